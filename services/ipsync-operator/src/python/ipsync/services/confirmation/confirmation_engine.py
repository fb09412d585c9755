import asyncio
from typing import Iterable, Optional
from loguru import logger
from prometheus_client import Counter, Gauge
from managed_exceptions import DeadlineExceededException, InternalErrorException, InvalidArgumentException, ManagedException
from request_handler import RequestThreadPool
from ipsync.models import AddressKind, ConfirmationReport, IpAddress, Observer
from ipsync.services.classifier import AddressClassifier
from ipsync.services.observers import ObserverClient
from ipsync.utils import AddressUtil
from .trust_authority import TrustAuthority

OBSERVER_VOTES_COUNTER = Counter("ipsync_observer_votes_total", "Total number of observer calls by outcome", ["observer", "outcome"])
CONFIRMATION_THRESHOLD_GAUGE = Gauge("ipsync_confirmation_threshold", "Confirmation threshold used by the latest run")
CONFIRMED_ADDRESSES_GAUGE = Gauge("ipsync_confirmed_addresses", "Number of addresses confirmed by the latest run")


class ConfirmationEngine:
    """
    Weighted consensus over independent observers.

    Every enabled observer is asked concurrently which address it sees. Each
    successful answer adds the observer's trust factor to that address' bucket,
    and once every observer has answered, the addresses whose bucket reached
    the confirmation threshold are confirmed. A failed observer is recorded and
    simply does not vote.
    """

    def __init__(self,
                 observers: Iterable[Observer],
                 trust_authority: TrustAuthority,
                 confirmations: Optional[int] = None,
                 observer_client: Optional[ObserverClient] = None,
                 local_address: Optional[str] = None):
        self.__observers: tuple[Observer, ...] = tuple(dict.fromkeys(observers))
        if not self.__observers:
            raise InvalidArgumentException("At least one observer must be enabled")
        if confirmations is not None and confirmations < 0:
            raise InvalidArgumentException(
                f"Confirmations must not be negative, got: {confirmations}",
                diagnostic_details={"confirmations": str(confirmations)}
            )
        self.__trust_authority = trust_authority
        self.__confirmations = confirmations
        self.__local_address: Optional[IpAddress] = AddressUtil.parse(local_address) if local_address else None
        self.__observer_client = observer_client or ObserverClient(local_address=local_address)

    @property
    def observers(self) -> tuple[Observer, ...]:
        return self.__observers

    async def run(self, deadline: Optional[float] = None) -> ConfirmationReport:
        # Resolve threshold
        default_threshold: int = self.__trust_authority.confirmation_threshold(self.__observers)
        threshold: int = default_threshold
        if self.__confirmations is not None and self.__confirmations != default_threshold:
            logger.warning(
                "Confirmation threshold overridden: {} instead of {}; an unwise value can make consensus "
                "unreachable or let an untrustworthy minority confirm a false address",
                self.__confirmations,
                default_threshold,
            )
            threshold = self.__confirmations

        # Classify each address at most once per run
        classified: dict[IpAddress, AddressKind] = {}

        # Dispatch one task per observer and wait for all of them
        tasks: dict[Observer, asyncio.Task] = {
            observer: asyncio.ensure_future(self.__observe(observer, classified))
            for observer in self.__observers
        }
        _, pending = await asyncio.wait(tasks.values(), timeout=deadline)

        # Fold the results
        weights: dict[IpAddress, int] = {}
        votes: dict[IpAddress, list[Observer]] = {}
        failed: dict[Observer, ManagedException] = {}
        for observer, task in tasks.items():
            if task in pending:
                task.cancel()
                failed[observer] = DeadlineExceededException(
                    f"Observer {observer} did not answer within {deadline}s",
                    diagnostic_details={"observer": observer.value}
                )
            elif task.exception() is not None:
                failed[observer] = self.__to_managed_exception(observer, task.exception())
            else:
                address: IpAddress = task.result()
                weights[address] = weights.get(address, 0) + self.__trust_authority.trust_factor(observer)
                votes.setdefault(address, []).append(observer)

        for observer in failed:
            OBSERVER_VOTES_COUNTER.labels(observer=observer.value, outcome="failed").inc()
        for observers in votes.values():
            for observer in observers:
                OBSERVER_VOTES_COUNTER.labels(observer=observer.value, outcome="voted").inc()

        # Partition the candidates
        confirmed: frozenset[IpAddress] = frozenset(a for a, w in weights.items() if w >= threshold)
        unconfirmed: dict[IpAddress, int] = {a: w for a, w in weights.items() if a not in confirmed}
        CONFIRMATION_THRESHOLD_GAUGE.set(threshold)
        CONFIRMED_ADDRESSES_GAUGE.set(len(confirmed))

        return ConfirmationReport(
            threshold=threshold,
            default_threshold=default_threshold,
            confirmed=confirmed,
            unconfirmed=unconfirmed,
            weights=weights,
            votes={address: tuple(observers) for address, observers in votes.items()},
            failed=failed,
        )

    async def __observe(self, observer: Observer, classified: dict[IpAddress, AddressKind]) -> IpAddress:
        # Never spend a call from an address that cannot be reached from outside
        if self.__local_address is not None:
            self.__assert_public(observer, self.__local_address, classified, "local bind address")

        address: IpAddress = await RequestThreadPool.run_async(self.__observer_client.observe, observer)
        self.__assert_public(observer, address, classified, "reported address")
        logger.debug("Observer {} reported {}", observer, address)
        return address

    def __assert_public(self, observer: Observer, address: IpAddress, classified: dict[IpAddress, AddressKind], role: str) -> None:
        if address not in classified:
            classified[address] = AddressClassifier.classify(address)
        kind: AddressKind = classified[address]
        if kind != AddressKind.PUBLIC:
            raise InvalidArgumentException(
                f"The {role} {address} of observer {observer} is not public ({kind.value})",
                diagnostic_details={"observer": observer.value, "address": str(address), "kind": kind.value}
            )

    def __to_managed_exception(self, observer: Observer, exception: BaseException) -> ManagedException:
        if isinstance(exception, ManagedException):
            return exception
        logger.opt(exception=exception).error("Observer {} failed unexpectedly", observer)
        return InternalErrorException(
            f"Observer {observer} failed unexpectedly: {exception}",
            diagnostic_details={"observer": observer.value}
        )
