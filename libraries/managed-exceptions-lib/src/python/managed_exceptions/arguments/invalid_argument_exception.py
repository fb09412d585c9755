from http import HTTPStatus
from typing import Optional
from managed_exceptions.error_details import ErrorDetails
from managed_exceptions.managed_exception import ManagedException

class InvalidArgumentException(ManagedException):
    """Rejected configuration or argument, raised before any network activity."""

    def __init__(self, message: str, diagnostic_details: Optional[dict[str, str]] = None):
        super().__init__(ErrorDetails(
            status_code=HTTPStatus.BAD_REQUEST,
            diagnostic_code="00400",
            diagnostic_details=diagnostic_details or {},
            message=message
        ))
