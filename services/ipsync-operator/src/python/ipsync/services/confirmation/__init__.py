from .confirmation_engine import ConfirmationEngine
from .trust_authority import TrustAuthority, TrustFactor

__all__ = [
    "ConfirmationEngine",
    "TrustAuthority",
    "TrustFactor",
]
