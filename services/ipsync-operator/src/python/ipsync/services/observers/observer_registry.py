from http import HTTPMethod
from typing import Callable, Mapping, TypeVar
from pydantic import BaseModel, ConfigDict, IPvAnyAddress, ValidationError
from managed_exceptions import InvalidArgumentException, MalformedResponseException
from ipsync.models import IpAddress, Observer

TResponse = TypeVar("TResponse", bound=BaseModel)

ResponseDecoder = Callable[[Mapping[str, str], bytes], IpAddress]


class ObserverDescriptor(BaseModel):
    """Constant request shape of one observer plus the decoder of its answer."""

    model_config = ConfigDict(frozen=True)

    observer: Observer
    request_method: HTTPMethod
    request_uri: str
    decoder: ResponseDecoder

    def decode(self, headers: Mapping[str, str], body: bytes) -> IpAddress:
        return self.decoder(headers, body)


class HttpBinResponse(BaseModel):
    origin: IPvAnyAddress


class IpFieldResponse(BaseModel):
    ip: IPvAnyAddress


def _decode_httpbin(headers: Mapping[str, str], body: bytes) -> IpAddress:
    return _validate(Observer.HTTPBIN, HttpBinResponse, body).origin


def _decode_ip_field(observer: Observer) -> ResponseDecoder:
    def decode(headers: Mapping[str, str], body: bytes) -> IpAddress:
        return _validate(observer, IpFieldResponse, body).ip
    return decode


def _validate(observer: Observer, response_class: type[TResponse], body: bytes) -> TResponse:
    try:
        return response_class.model_validate_json(body)
    except ValidationError as e:
        raise MalformedResponseException(
            f"Cannot decode response of observer {observer}, data: {body.decode('utf-8', errors='replace')}",
            diagnostic_details={"observer": observer.value}
        ) from e


class ObserverRegistry:
    __DESCRIPTORS: dict[Observer, ObserverDescriptor] = {
        Observer.HTTPBIN: ObserverDescriptor(
            observer=Observer.HTTPBIN,
            request_method=HTTPMethod.GET,
            request_uri="https://httpbin.org/ip",
            decoder=_decode_httpbin
        ),
        Observer.IPIFY: ObserverDescriptor(
            observer=Observer.IPIFY,
            request_method=HTTPMethod.GET,
            request_uri="https://api64.ipify.org?format=json",
            decoder=_decode_ip_field(Observer.IPIFY)
        ),
        Observer.IFCONFIG: ObserverDescriptor(
            observer=Observer.IFCONFIG,
            request_method=HTTPMethod.GET,
            request_uri="https://ifconfig.co/json",
            decoder=_decode_ip_field(Observer.IFCONFIG)
        ),
        Observer.IPINFO: ObserverDescriptor(
            observer=Observer.IPINFO,
            request_method=HTTPMethod.GET,
            request_uri="https://ipinfo.io/json",
            decoder=_decode_ip_field(Observer.IPINFO)
        ),
    }

    @staticmethod
    def describe(observer: Observer) -> ObserverDescriptor:
        return ObserverRegistry.__DESCRIPTORS[observer]

    @staticmethod
    def all() -> list[Observer]:
        return list(Observer)

    @staticmethod
    def parse(name: str) -> Observer:
        normalized: str = name.strip().lower()
        for observer in Observer:
            if observer.value == normalized or observer.name.lower() == normalized:
                return observer
        raise InvalidArgumentException(
            f"Unknown observer '{name}', supported: {', '.join(o.value for o in Observer)}",
            diagnostic_details={"observer": name}
        )
