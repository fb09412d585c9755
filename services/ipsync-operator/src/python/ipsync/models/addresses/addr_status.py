import enum

class AddrStatus(str, enum.Enum):
    """How one ExternalIP was treated by the most recent reconciliation pass."""

    NEW = "New"
    SKIPPED = "Skipped"
    REMOVED = "Removed"
