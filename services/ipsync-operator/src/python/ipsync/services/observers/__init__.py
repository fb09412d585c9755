from .observer_client import ObserverClient
from .observer_registry import ObserverDescriptor, ObserverRegistry

__all__ = [
    "ObserverClient",
    "ObserverDescriptor",
    "ObserverRegistry",
]
