import httpx
from typing import Optional
from client_handler import ClientHandler
from ipsync.constants import DEFAULT_REQUEST_TIMEOUT_SECONDS
from ipsync.models import IpAddress, Observer
from .observer_registry import ObserverDescriptor, ObserverRegistry

class ObserverClient(ClientHandler):
    """Issues the single HTTP request of an observer and decodes the reported address."""

    def __init__(self,
                 timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
                 local_address: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        if transport is None and local_address:
            transport = httpx.HTTPTransport(local_address=local_address)
        super().__init__(
            default_timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport
        )

    def observe(self, observer: Observer) -> IpAddress:
        descriptor: ObserverDescriptor = ObserverRegistry.describe(observer)
        response: httpx.Response = self.invoke(descriptor.request_method.value, descriptor.request_uri)
        return descriptor.decode(response.headers, response.content)
