"""Classification of IP literals against the reserved address tables.

https://en.wikipedia.org/wiki/Reserved_IP_addresses

Both tables are scanned in order and the first range containing the address
decides its kind; an address outside every range is public.
"""

from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network, ip_network
from ipsync.models.addresses.address_kind import AddressKind
from ipsync.models.addresses.ip_address import IpAddress
from ipsync.utils.address_util import AddressUtil

_RESERVED_IPV4: tuple[tuple[IPv4Network, AddressKind], ...] = tuple(
    (ip_network(cidr), kind) for cidr, kind in (
        ("0.0.0.0/8", AddressKind.LOOPBACK),
        ("10.0.0.0/8", AddressKind.PRIVATE),
        ("100.64.0.0/10", AddressKind.RESERVED),
        ("127.0.0.0/8", AddressKind.LOOPBACK),
        ("169.254.0.0/16", AddressKind.PRIVATE),
        ("172.16.0.0/12", AddressKind.PRIVATE),
        ("192.0.0.0/24", AddressKind.RESERVED),
        ("192.0.2.0/24", AddressKind.RESERVED),
        ("192.88.99.0/24", AddressKind.RESERVED),
        ("192.168.0.0/16", AddressKind.PRIVATE),
        ("198.18.0.0/15", AddressKind.RESERVED),
        ("198.51.100.0/24", AddressKind.RESERVED),
        ("203.0.113.0/24", AddressKind.RESERVED),
        ("224.0.0.0/4", AddressKind.MULTICAST),
        ("233.252.0.0/24", AddressKind.RESERVED),
        ("240.0.0.0/4", AddressKind.RESERVED),
        ("255.255.255.255/32", AddressKind.MULTICAST),
    )
)

_RESERVED_IPV6: tuple[tuple[IPv6Network, AddressKind], ...] = tuple(
    (ip_network(cidr), kind) for cidr, kind in (
        ("::/128", AddressKind.LOOPBACK),
        ("::1/128", AddressKind.LOOPBACK),
        ("::ffff:0:0/96", AddressKind.RESERVED),
        ("::ffff:0:0:0/96", AddressKind.RESERVED),
        ("64:ff9b::/96", AddressKind.RESERVED),
        ("64:ff9b:1::/48", AddressKind.RESERVED),
        ("100::/64", AddressKind.RESERVED),
        ("2001::/32", AddressKind.RESERVED),
        ("2001:20::/28", AddressKind.RESERVED),
        ("2001:db8::/32", AddressKind.RESERVED),
        ("2002::/16", AddressKind.RESERVED),
        ("3fff::/20", AddressKind.RESERVED),
        ("5f00::/16", AddressKind.RESERVED),
        ("fc00::/7", AddressKind.PRIVATE),
        ("fe80::/10", AddressKind.PRIVATE),
        ("ff00::/8", AddressKind.MULTICAST),
    )
)


class AddressClassifier:

    @staticmethod
    def classify(address: IpAddress | str) -> AddressKind:
        ip: IpAddress = AddressUtil.parse(address)
        if isinstance(ip, IPv4Address):
            return AddressClassifier.__scan(ip, _RESERVED_IPV4)
        return AddressClassifier.__scan(ip, _RESERVED_IPV6)

    @staticmethod
    def is_public(address: IpAddress | str) -> bool:
        return AddressClassifier.classify(address) == AddressKind.PUBLIC

    @staticmethod
    def __scan(ip: IPv4Address | IPv6Address, table: tuple) -> AddressKind:
        for network, kind in table:
            if ip in network:
                return kind
        return AddressKind.PUBLIC
