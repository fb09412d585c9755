import enum
from typing import Iterable, Mapping, Optional
from managed_exceptions import InvalidArgumentException
from ipsync.models import Observer
from ipsync.services.observers import ObserverRegistry

COMPENSATION_NUMERATOR = 67
COMPENSATION_DENOMINATOR = 100


class TrustFactor(enum.IntEnum):
    LOW = 1
    MED = 2
    HIGH = 3


class TrustAuthority:
    """
    Source of the trust factor of every known observer.

    During a confirmation run, the trust factor of each observer that reported
    an address is added to that address' bucket. Once the bucket reaches the
    confirmation threshold (see `confirmation_threshold`), the address is
    considered confirmed.

    Trust factors are overridden only before a run starts; the authority is
    read-only while a run is in flight.
    """

    __DEFAULTS: dict[Observer, TrustFactor] = {
        Observer.HTTPBIN: TrustFactor.LOW,
        Observer.IPIFY: TrustFactor.MED,
        Observer.IFCONFIG: TrustFactor.MED,
        Observer.IPINFO: TrustFactor.MED,
    }

    def __init__(self, overrides: Optional[Mapping[Observer, int]] = None):
        self.__custom: dict[Observer, int] = {}
        for observer, trust_factor in (overrides or {}).items():
            self.set_trust_factor(observer, trust_factor)

    @staticmethod
    def is_valid(trust_factor: int) -> bool:
        return trust_factor in (TrustFactor.LOW, TrustFactor.MED, TrustFactor.HIGH)

    @staticmethod
    def default_trust_factor(observer: Observer) -> int:
        return int(TrustAuthority.__DEFAULTS[observer])

    @staticmethod
    def parse_trust_factor(pair: str) -> tuple[Observer, int]:
        """Parse an ``observer=weight`` pair, e.g. ``ipinfo=3``."""
        name, separator, raw_weight = pair.partition("=")
        if not separator or not name.strip() or not raw_weight.strip():
            raise InvalidArgumentException(
                f"Malformed trust factor '{pair}', expected observer=weight",
                diagnostic_details={"trust_factor": pair}
            )
        try:
            trust_factor: int = int(raw_weight.strip())
        except ValueError as e:
            raise InvalidArgumentException(
                f"Malformed trust factor '{pair}', weight must be an integer",
                diagnostic_details={"trust_factor": pair}
            ) from e
        return ObserverRegistry.parse(name), trust_factor

    def trust_factor(self, observer: Observer) -> int:
        return self.__custom.get(observer, TrustAuthority.default_trust_factor(observer))

    def set_trust_factor(self, observer: Observer, trust_factor: int) -> None:
        if not TrustAuthority.is_valid(trust_factor):
            raise InvalidArgumentException(
                f"Trust factor of {observer} must be one of 1, 2 or 3, got: {trust_factor}",
                diagnostic_details={"observer": str(observer), "trust_factor": str(trust_factor)}
            )
        self.__custom[observer] = int(trust_factor)

    def overrides(self) -> dict[Observer, int]:
        return dict(self.__custom)

    def confirmation_threshold(self, observers: Iterable[Observer]) -> int:
        """
        Calculate the weight an address must accumulate to be confirmed.

        The sum of the trust factors is compensated by 0.67, kept in integers
        as 67/100:
        - a single observer must agree on its own, so its full weight is required;
        - two observers round the compensated sum up;
        - three and more round it down.
        """
        enabled: list[Observer] = list(dict.fromkeys(observers))
        if not enabled:
            raise ValueError("Confirmation threshold is undefined when no observers are given")

        trust_factor_total: int = sum(self.trust_factor(observer) for observer in enabled)
        if len(enabled) == 1:
            return trust_factor_total
        if len(enabled) == 2:
            return -((-trust_factor_total * COMPENSATION_NUMERATOR) // COMPENSATION_DENOMINATOR)
        return (trust_factor_total * COMPENSATION_NUMERATOR) // COMPENSATION_DENOMINATOR
