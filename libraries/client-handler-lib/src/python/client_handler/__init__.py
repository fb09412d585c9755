from .client_handler import ClientHandler
from .error_response import ErrorResponse

__all__ = [
    "ClientHandler",
    "ErrorResponse"
]
