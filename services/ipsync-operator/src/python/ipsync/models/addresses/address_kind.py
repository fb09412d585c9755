import enum

class AddressKind(str, enum.Enum):
    LOOPBACK = "Loopback"
    PRIVATE = "Private"
    MULTICAST = "Multicast"
    RESERVED = "Reserved"
    PUBLIC = "Public"
