from ipaddress import IPv4Address, IPv6Address

IpAddress = IPv4Address | IPv6Address
