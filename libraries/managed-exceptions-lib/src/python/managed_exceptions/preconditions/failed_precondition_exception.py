from http import HTTPStatus
from typing import Optional
from managed_exceptions.error_details import ErrorDetails
from managed_exceptions.managed_exception import ManagedException

class FailedPreconditionException(ManagedException):
    """The operation is not allowed in the current state of the caller."""

    def __init__(self, message: str, diagnostic_details: Optional[dict[str, str]] = None):
        super().__init__(ErrorDetails(
            status_code=HTTPStatus.PRECONDITION_FAILED,
            diagnostic_code="00412",
            diagnostic_details=diagnostic_details or {},
            message=message
        ))
