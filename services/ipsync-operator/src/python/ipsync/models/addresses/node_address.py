from pydantic import BaseModel, ConfigDict
from ipsync.constants import ADDRESS_TYPE_EXTERNAL_IP

class NodeAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    type: str

    @property
    def is_external(self) -> bool:
        return self.type == ADDRESS_TYPE_EXTERNAL_IP
