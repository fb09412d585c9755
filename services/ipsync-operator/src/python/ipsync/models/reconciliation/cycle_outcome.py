from pydantic import BaseModel, ConfigDict, Field
from ipsync.models.addresses.addr_status import AddrStatus
from ipsync.models.addresses.ip_address import IpAddress
from ipsync.models.confirmation.confirmation_report import ConfirmationReport

class CycleOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    report: ConfirmationReport
    statuses: dict[IpAddress, AddrStatus] = Field(default_factory=dict)
    reconciled: bool = False

    def addresses_with(self, status: AddrStatus) -> list[IpAddress]:
        return [address for address, address_status in self.statuses.items() if address_status == status]
