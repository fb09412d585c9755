from http import HTTPStatus
from typing import Optional
from managed_exceptions.error_details import ErrorDetails
from managed_exceptions.managed_exception import ManagedException

class ConflictException(ManagedException):
    """The remote object changed concurrently and the write was refused."""

    def __init__(self, message: str, diagnostic_details: Optional[dict[str, str]] = None):
        super().__init__(ErrorDetails(
            status_code=HTTPStatus.CONFLICT,
            diagnostic_code="00409",
            diagnostic_details=diagnostic_details or {},
            message=message
        ))
