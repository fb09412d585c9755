from .addresses.addr_status import AddrStatus
from .addresses.address_kind import AddressKind
from .addresses.ip_address import IpAddress
from .addresses.node_address import NodeAddress
from .confirmation.confirmation_report import ConfirmationReport
from .observers.observer import Observer
from .reconciliation.cycle_outcome import CycleOutcome
from .reconciliation.reconciler_state import ReconcilerState

__all__ = [
    "AddrStatus",
    "AddressKind",
    "ConfirmationReport",
    "CycleOutcome",
    "IpAddress",
    "NodeAddress",
    "Observer",
    "ReconcilerState",
]
