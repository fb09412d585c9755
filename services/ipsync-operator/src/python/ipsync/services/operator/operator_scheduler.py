import asyncio
import signal
import threading
from time import time
from typing import Optional
from injector import inject, singleton
from loguru import logger
from prometheus_client import Counter, Histogram
from ipsync.configs import OperatorConfig
from ipsync.models import CycleOutcome
from ipsync.utils import DurationUtil
from .reconciliation_cycle_service import ReconciliationCycleService

CYCLE_COUNTER = Counter("ipsync_cycle_total", "Total number of reconciliation cycles by outcome", ["outcome"])
CYCLE_DURATION_HISTOGRAM = Histogram("ipsync_cycle_duration_seconds", "Duration of reconciliation cycles in seconds")


@singleton
class OperatorScheduler:
    """
    Runs a reconciliation cycle right away and then once per interval.

    The loop ends when `stop` is called (SIGINT / SIGTERM once `install_signal_handlers`
    ran) or when a cycle fails; in the latter case the error is raised to the caller.
    """

    @inject
    def __init__(self, config: OperatorConfig, cycle_service: ReconciliationCycleService):
        self.__interval: float = config.interval_seconds
        self.__cycle_service = cycle_service
        self.__stop_event = threading.Event()
        self.__cycles: int = 0

    @property
    def cycles(self) -> int:
        return self.__cycles

    def install_signal_handlers(self) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, self.__on_signal)

    def stop(self) -> None:
        self.__stop_event.set()

    def run(self, max_cycles: Optional[int] = None) -> None:
        logger.info("Reconciling every {}", DurationUtil.format_seconds(self.__interval))
        while not self.__stop_event.is_set():
            self.run_once()
            if max_cycles is not None and self.__cycles >= max_cycles:
                break
            self.__stop_event.wait(self.__interval)
        logger.info("Operator stopped after {} cycle(s)", self.__cycles)

    def run_once(self) -> CycleOutcome:
        start_time: float = time()
        try:
            outcome: CycleOutcome = asyncio.run(self.__cycle_service.run_cycle())
        except Exception:
            CYCLE_COUNTER.labels(outcome="failed").inc()
            raise
        finally:
            CYCLE_DURATION_HISTOGRAM.observe(time() - start_time)
            self.__cycles += 1
        CYCLE_COUNTER.labels(outcome="reconciled" if outcome.reconciled else "skipped").inc()
        return outcome

    def __on_signal(self, signum: int, frame) -> None:
        logger.info("Received {}, stopping", signal.Signals(signum).name)
        self.stop()
