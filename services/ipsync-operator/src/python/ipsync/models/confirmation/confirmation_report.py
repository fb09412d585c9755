from pydantic import BaseModel, ConfigDict, Field
from managed_exceptions import ManagedException
from ipsync.models.addresses.ip_address import IpAddress
from ipsync.models.observers.observer import Observer

class ConfirmationReport(BaseModel):
    """Outcome of one confirmation run. Never mutated after the run completes."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    threshold: int
    """The quorum the run used (the override, when one was given)."""

    default_threshold: int
    """The quorum derived from the trust factors of the enabled observers."""

    confirmed: frozenset[IpAddress] = Field(default_factory=frozenset)
    """Candidates whose accumulated weight reached the threshold."""

    unconfirmed: dict[IpAddress, int] = Field(default_factory=dict)
    """Candidates below the threshold, with their final tally."""

    weights: dict[IpAddress, int] = Field(default_factory=dict)
    """Accumulated weight of every candidate, confirmed or not."""

    votes: dict[IpAddress, tuple[Observer, ...]] = Field(default_factory=dict)
    """Observers that reported each candidate."""

    failed: dict[Observer, ManagedException] = Field(default_factory=dict)
    """Observers that did not produce a usable candidate, with the reason."""

    @property
    def is_override(self) -> bool:
        return self.threshold != self.default_threshold
