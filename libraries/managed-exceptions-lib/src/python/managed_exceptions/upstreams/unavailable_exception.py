from http import HTTPStatus
from typing import Optional
from managed_exceptions.error_details import ErrorDetails
from managed_exceptions.managed_exception import ManagedException

class UnavailableException(ManagedException):
    """The upstream could not be reached (connection, DNS or TLS failure)."""

    def __init__(self, message: str, diagnostic_details: Optional[dict[str, str]] = None):
        super().__init__(ErrorDetails(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            diagnostic_code="00503",
            diagnostic_details=diagnostic_details or {},
            message=message
        ))
