from typing import Optional
from injector import ProviderOf, inject, singleton
from loguru import logger
from managed_exceptions import FailedPreconditionException
from ipsync.configs import OperatorConfig
from ipsync.models import AddrStatus, ConfirmationReport, CycleOutcome, IpAddress
from ipsync.services.cluster import ClusterNodesApi
from ipsync.services.confirmation import ConfirmationEngine
from ipsync.services.observers import ObserverClient
from ipsync.services.reconciliation import AddressReconciler
from ipsync.utils import AddressUtil


@singleton
class ReconciliationCycleService:
    """One confirmation run followed by one reconciliation of the node."""

    @inject
    def __init__(self,
                 config: OperatorConfig,
                 cluster_nodes_api: ProviderOf[ClusterNodesApi],
                 observer_client: ObserverClient):
        self.__config = config
        self.__cluster_nodes_api = cluster_nodes_api
        self.__confirmation_engine = ConfirmationEngine(
            observers=config.enabled_observers(),
            trust_authority=config.trust_authority(),
            confirmations=config.confirmations,
            observer_client=observer_client,
            local_address=config.local_address
        )
        self.__reconciler: Optional[AddressReconciler] = None

    @property
    def confirmation_engine(self) -> ConfirmationEngine:
        return self.__confirmation_engine

    def reconciler(self) -> AddressReconciler:
        if self.__reconciler is None:
            self.__reconciler = AddressReconciler(
                cluster_nodes_api=self.__cluster_nodes_api.get(),
                node_name=self.__config.require_node_name(),
                dry_run=self.__config.dry_run,
                purge=self.__config.strict
            )
        return self.__reconciler

    async def probe(self) -> ConfirmationReport:
        report: ConfirmationReport = await self.__confirmation_engine.run(self.__config.cycle_deadline_seconds)
        self.__log_report(report)
        return report

    async def run_cycle(self) -> CycleOutcome:
        reconciler: AddressReconciler = self.reconciler()
        report: ConfirmationReport = await self.probe()

        # A total observer outage must never strip addresses
        if not report.confirmed:
            logger.warning("No address reached the confirmation threshold of {}, skipping reconciliation", report.threshold)
            return CycleOutcome(report=report)

        for address in sorted(report.confirmed, key=AddressUtil.sort_key):
            reconciler.stage(address)
        statuses: dict[IpAddress, AddrStatus] = reconciler.apply()

        for address, status in statuses.items():
            match status:
                case AddrStatus.NEW:
                    logger.info("{} {} on node {}", status.value, address, reconciler.node_name)
                case AddrStatus.REMOVED:
                    logger.warning("{} {} from node {}", status.value, address, reconciler.node_name)
                case _:
                    logger.debug("{} {} on node {}", status.value, address, reconciler.node_name)

        return CycleOutcome(report=report, statuses=statuses, reconciled=True)

    async def purge(self) -> list[IpAddress]:
        """Keep only the confirmed ExternalIP addresses of the node and remove every other one."""
        reconciler: AddressReconciler = self.reconciler()
        report: ConfirmationReport = await self.probe()
        if not report.confirmed:
            raise FailedPreconditionException(
                "No address was confirmed, refusing to purge",
                diagnostic_details={"node": reconciler.node_name}
            )

        for address in report.confirmed:
            reconciler.stage(address)
        removed: list[IpAddress] = reconciler.purge_unstaged()
        for address in removed:
            logger.warning("Removed {} from node {}", address, reconciler.node_name)
        return removed

    @staticmethod
    def __log_report(report: ConfirmationReport) -> None:
        for observer, error in report.failed.items():
            logger.warning("Observer {} failed: {}", observer, error)
        for address, weight in report.unconfirmed.items():
            logger.info("Address {} is unconfirmed with weight {} of {}", address, weight, report.threshold)
        for address in sorted(report.confirmed, key=AddressUtil.sort_key):
            logger.info("Address {} is confirmed with weight {}", address, report.weights[address])
