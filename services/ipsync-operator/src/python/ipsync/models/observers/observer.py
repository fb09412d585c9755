import enum

class Observer(str, enum.Enum):
    """Closed set of external services that report the caller's apparent IP."""

    HTTPBIN = "httpbin"
    IPIFY = "ipify"
    IFCONFIG = "ifconfig"
    IPINFO = "ipinfo"

    def __str__(self) -> str:
        return self.value
