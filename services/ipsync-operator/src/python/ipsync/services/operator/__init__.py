from .operator_scheduler import OperatorScheduler
from .reconciliation_cycle_service import ReconciliationCycleService

__all__ = [
    "OperatorScheduler",
    "ReconciliationCycleService",
]
