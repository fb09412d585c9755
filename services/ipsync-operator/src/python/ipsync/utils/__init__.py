from .address_util import AddressUtil
from .duration_util import DurationUtil

__all__ = [
    "AddressUtil",
    "DurationUtil"
]
