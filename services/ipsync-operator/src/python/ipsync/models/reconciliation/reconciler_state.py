import enum

class ReconcilerState(str, enum.Enum):
    FRESH = "Fresh"
    STAGED = "Staged"
    APPLIED = "Applied"
