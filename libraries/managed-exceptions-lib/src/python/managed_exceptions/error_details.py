from http import HTTPStatus
from pydantic import BaseModel, Field

class ErrorDetails(BaseModel):
    status_code: HTTPStatus
    diagnostic_code: str
    diagnostic_details: dict[str, str] = Field(default_factory=dict)
    message: str
