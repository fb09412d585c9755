import ipaddress
from managed_exceptions import InvalidArgumentException
from ipsync.models.addresses.ip_address import IpAddress

class AddressUtil:

    @staticmethod
    def parse(value: "IpAddress | str") -> IpAddress:
        if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            return value
        try:
            return ipaddress.ip_address(str(value).strip())
        except ValueError as e:
            raise InvalidArgumentException(
                f"'{value}' is not a valid IP address",
                diagnostic_details={"address": str(value)}
            ) from e

    @staticmethod
    def try_parse(value: str) -> IpAddress | None:
        try:
            return ipaddress.ip_address(value.strip())
        except ValueError:
            return None

    @staticmethod
    def sort_key(address: IpAddress) -> tuple[int, int]:
        # IPv4 before IPv6, then numeric order
        return address.version, int(address)
