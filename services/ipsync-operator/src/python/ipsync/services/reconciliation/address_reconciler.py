from typing import Optional
from loguru import logger
from prometheus_client import Counter
from managed_exceptions import FailedPreconditionException, InvalidArgumentException
from ipsync.constants import ADDRESS_TYPE_EXTERNAL_IP
from ipsync.models import AddrStatus, IpAddress, NodeAddress, ReconcilerState
from ipsync.services.cluster import ClusterNodesApi
from ipsync.utils import AddressUtil

ADDRESS_CHANGES_COUNTER = Counter("ipsync_address_changes_total", "Total number of reconciled addresses by status", ["status"])
NODE_PATCH_COUNTER = Counter("ipsync_node_patch_total", "Total number of node address patches sent", ["dry_run"])


class AddressReconciler:
    """
    Keeps the ExternalIP entries of one node in line with the staged addresses.

    The reconciler caches the address list of the node and remembers which
    external addresses it applied itself. Each cycle the caller stages the
    addresses it wants and calls `apply`, which computes the full desired list
    and sends a single patch only when that list differs from the current one.
    Entries of any other type are passed through untouched.
    """

    def __init__(self,
                 cluster_nodes_api: ClusterNodesApi,
                 node_name: str,
                 dry_run: bool = False,
                 purge: bool = False):
        if not node_name or not node_name.strip():
            raise InvalidArgumentException("Node name must not be empty")
        self.__cluster_nodes_api = cluster_nodes_api
        self.__node_name: str = node_name.strip()
        self.__dry_run: bool = dry_run
        self.__purge: bool = purge
        self.__state: ReconcilerState = ReconcilerState.FRESH
        self.__current: list[NodeAddress] = []
        self.__external: list[IpAddress] = []
        self.__applied: set[IpAddress] = set()
        self.__foreign: set[IpAddress] = set()
        self.__staged: set[IpAddress] = set()
        self.refresh()

    @property
    def node_name(self) -> str:
        return self.__node_name

    @property
    def state(self) -> ReconcilerState:
        return self.__state

    @property
    def dry_run(self) -> bool:
        return self.__dry_run

    @property
    def purge(self) -> bool:
        return self.__purge

    @property
    def staged(self) -> frozenset[IpAddress]:
        return frozenset(self.__staged)

    @property
    def applied(self) -> frozenset[IpAddress]:
        return frozenset(self.__applied)

    @property
    def foreign(self) -> frozenset[IpAddress]:
        return frozenset(self.__foreign)

    @property
    def external_addresses(self) -> list[IpAddress]:
        return list(self.__external)

    @property
    def addresses(self) -> list[NodeAddress]:
        return list(self.__current)

    def refresh(self) -> None:
        addresses: list[NodeAddress] = self.__cluster_nodes_api.get_node_addresses(self.__node_name)
        self.__load(addresses)
        self.__applied &= set(self.__external)
        self.__foreign = set(self.__external) - self.__applied
        self.__state = ReconcilerState.FRESH

    def stage(self, address: "IpAddress | str") -> None:
        self.__staged.add(AddressUtil.parse(address))
        self.__state = ReconcilerState.STAGED

    def apply(self) -> dict[IpAddress, AddrStatus]:
        if not self.__staged and not self.__purge:
            raise FailedPreconditionException(
                f"Nothing is staged for node {self.__node_name}; refusing to apply without purge",
                diagnostic_details={"node": self.__node_name}
            )
        return self.__apply(self.__purge)

    def purge_unstaged(self) -> list[IpAddress]:
        """
        Remove every external address that is neither staged nor applied by this reconciler.

        Without a prior `apply` in this process nothing is remembered as applied,
        so every external address not staged is removed.
        """
        if not self.__dry_run:
            self.refresh()
        self.__staged |= self.__applied & set(self.__external)
        statuses: dict[IpAddress, AddrStatus] = self.__apply(True)
        return [address for address, status in statuses.items() if status == AddrStatus.REMOVED]

    def __apply(self, purge: bool) -> dict[IpAddress, AddrStatus]:
        known: set[IpAddress] = self.__applied | set(self.__external)

        # Dry runs keep working on the cached view
        if not self.__dry_run:
            self.__load(self.__cluster_nodes_api.get_node_addresses(self.__node_name))
        current: list[NodeAddress] = list(self.__current)

        # Walk the current list and build the desired one
        desired: list[NodeAddress] = []
        statuses: dict[IpAddress, AddrStatus] = {}
        for entry in current:
            address: Optional[IpAddress] = AddressUtil.try_parse(entry.address) if entry.is_external else None
            if address is None:
                desired.append(entry)
            elif address in self.__staged:
                desired.append(entry)
                statuses[address] = AddrStatus.SKIPPED if address in known else AddrStatus.NEW
            elif purge:
                statuses[address] = AddrStatus.REMOVED
            else:
                desired.append(entry)
                statuses[address] = AddrStatus.SKIPPED

        for address in sorted(self.__staged - statuses.keys(), key=AddressUtil.sort_key):
            desired.append(NodeAddress(address=str(address), type=ADDRESS_TYPE_EXTERNAL_IP))
            statuses[address] = AddrStatus.NEW

        # Patch only when something changed
        changed: bool = desired != current
        if changed:
            logger.info("Patching addresses of node {} (dry run: {})", self.__node_name, self.__dry_run)
            self.__cluster_nodes_api.patch_node_addresses(self.__node_name, desired, self.__dry_run)
            NODE_PATCH_COUNTER.labels(dry_run=str(self.__dry_run).lower()).inc()
        else:
            logger.debug("Addresses of node {} are up to date, nothing to patch", self.__node_name)

        # Remember what is ours
        for address, status in statuses.items():
            ADDRESS_CHANGES_COUNTER.labels(status=status.value).inc()
            if status == AddrStatus.REMOVED:
                self.__applied.discard(address)
            else:
                self.__applied.add(address)
        self.__staged.clear()

        if changed and not self.__dry_run:
            self.refresh()
            self.__state = ReconcilerState.APPLIED
        else:
            self.__state = ReconcilerState.FRESH

        return dict(sorted(statuses.items(), key=lambda item: AddressUtil.sort_key(item[0])))

    def __load(self, addresses: list[NodeAddress]) -> None:
        external: list[IpAddress] = []
        for entry in addresses:
            if not entry.is_external:
                continue
            address: Optional[IpAddress] = AddressUtil.try_parse(entry.address)
            if address is None:
                logger.warning("Ignoring unparsable ExternalIP '{}' of node {}", entry.address, self.__node_name)
                continue
            external.append(address)
        self.__current = list(addresses)
        self.__external = external
