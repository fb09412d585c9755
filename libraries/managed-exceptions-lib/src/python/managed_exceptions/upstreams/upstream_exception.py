from http import HTTPStatus
from typing import Optional
from managed_exceptions.error_details import ErrorDetails
from managed_exceptions.managed_exception import ManagedException

class UpstreamException(ManagedException):
    """An upstream answered with a non-2xx status."""

    def __init__(self, http_status: HTTPStatus, message: str, diagnostic_code: str = "00502", diagnostic_details: Optional[dict[str, str]] = None):
        super().__init__(ErrorDetails(
            status_code=http_status,
            diagnostic_code=diagnostic_code or "00502",
            diagnostic_details=diagnostic_details or {},
            message=message
        ))
