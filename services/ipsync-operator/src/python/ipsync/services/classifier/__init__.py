from .address_classifier import AddressClassifier

__all__ = [
    "AddressClassifier",
]
