from .address_reconciler import AddressReconciler

__all__ = [
    "AddressReconciler",
]
