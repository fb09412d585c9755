import httpx
import logging
import ssl
from abc import ABC
from http import HTTPStatus
from time import time
from typing import Any, Optional
from pydantic import ValidationError
from managed_exceptions import ManagedException, InternalErrorException, UpstreamException, UnavailableException, DeadlineExceededException
from prometheus_client import Counter, Histogram
from .error_response import ErrorResponse

API_EXE_COUNTER = Counter("ipsync_client_exe_total", "Total number of outbound HTTP requests executed", ["handler"])
API_EXE_DURATION_HISTOGRAM = Histogram("ipsync_client_exe_duration_seconds", "Duration of outbound HTTP requests in seconds", ["handler"])
API_EXE_ERROR_COUNTER = Counter("ipsync_client_exe_error_total", "Total number of outbound HTTP requests that resulted in error", ["handler", "status_code"])

class ClientHandler(ABC):
    """Base class for every outbound HTTP client.

    Wraps one ``httpx.Client`` and turns every failure into a ``ManagedException``:
    a non-2xx answer becomes the exception returned by ``_on_error_response``
    (``UpstreamException`` by default), a timeout becomes
    ``DeadlineExceededException`` and any other transport failure becomes
    ``UnavailableException``.
    """

    def __init__(self,
                 host: str = "",
                 default_timeout: float | httpx.Timeout = 10.0,
                 headers: Optional[dict[str, str]] = None,
                 verify: ssl.SSLContext | bool = True,
                 transport: Optional[httpx.BaseTransport] = None):
        self.__logger = logging.getLogger(self.__class__.__name__)
        self.__http_client = httpx.Client(
            timeout=default_timeout,
            headers=headers,
            verify=verify,
            transport=transport
        )
        self.__host = host

    @property
    def host(self) -> str:
        return self.__host

    def invoke(self,
               method: str,
               api: str,
               json: Optional[Any] = None,
               content: Optional[bytes] = None,
               params: Optional[dict[str, str]] = None,
               timeout: Optional[float] = None,
               headers: Optional[dict[str, str]] = None) -> httpx.Response:
        start_time: float = time()
        API_EXE_COUNTER.labels(handler=self.__class__.__name__).inc()
        url: str = self.__get_url(api)
        try:
            self.__logger.info(f"[EXTERNAL] Full Request: <{method} {url} | {json}>")

            # Execute HTTP request
            response = self.__http_client.request(
                method,
                url,
                json=json,
                content=content,
                params=params,
                timeout=timeout or httpx.USE_CLIENT_DEFAULT,
                headers=headers
            )

            # Return OK response
            if response.is_success:
                self.__logger.info(f"[EXTERNAL] Full Response: <{response.status_code} | {response.text}>")
                return response

            # Raise error response
            raise self._on_error_response(response)
        except httpx.TimeoutException as e1:
            raise self.__on_failure(DeadlineExceededException(
                f"Request to {url} timed out",
                diagnostic_details={"url": url}
            ), e1)
        except httpx.HTTPError as e2:
            raise self.__on_failure(UnavailableException(
                f"Request to {url} failed: {e2}",
                diagnostic_details={"url": url}
            ), e2)
        except ManagedException as e3:
            raise self.__on_failure(e3, None)
        except Exception as e4:
            raise self.__on_failure(InternalErrorException(
                f"An unexpected error occurred while calling {url}: {e4}"
            ), e4)
        finally:
            duration: float = time() - start_time
            API_EXE_DURATION_HISTOGRAM.labels(handler=self.__class__.__name__).observe(duration)

    def close(self) -> None:
        self.__http_client.close()

    def _on_error_response(self, response: httpx.Response) -> ManagedException:
        # Parse error body, upstreams are not required to answer with JSON
        try:
            error_response: ErrorResponse = ErrorResponse.model_validate_json(response.content)
            message: str = error_response.message
            diagnostic_code: str = error_response.diagnostic_code
            diagnostic_details: dict[str, str] = error_response.diagnostic_details
        except ValidationError:
            message = response.text
            diagnostic_code = ""
            diagnostic_details = {}

        return UpstreamException(
            http_status=HTTPStatus(response.status_code),
            message=message or f"Upstream answered with {response.status_code}",
            diagnostic_code=diagnostic_code,
            diagnostic_details=diagnostic_details
        )

    def __on_failure(self, exception: ManagedException, cause: Optional[Exception]) -> ManagedException:
        actual_error_response: ErrorResponse = self.__get_error_response(exception)
        self.__logger.info(f"[EXTERNAL] Full Response: <{exception.status_code} | {actual_error_response}>", exc_info=cause is not None)
        API_EXE_ERROR_COUNTER.labels(handler=self.__class__.__name__, status_code=int(exception.status_code)).inc()
        if cause is not None:
            exception.__cause__ = cause
        return exception

    def __get_url(self, api: str) -> str:
        if api.startswith("http://") or api.startswith("https://"):
            return api
        return f"{self.__host.rstrip('/')}/{api.lstrip('/')}"

    def __get_error_response(self, exception: ManagedException) -> ErrorResponse:
        return ErrorResponse(
            diagnostic_code=exception.diagnostic_code,
            diagnostic_details=exception.diagnostic_details,
            message=str(exception)
        )
