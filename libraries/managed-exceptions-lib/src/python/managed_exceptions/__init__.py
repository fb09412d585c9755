from managed_exceptions.error_details import ErrorDetails
from managed_exceptions.managed_exception import ManagedException
from managed_exceptions.arguments.invalid_argument_exception import InvalidArgumentException
from managed_exceptions.arguments.item_not_found_exception import ItemNotFoundException
from managed_exceptions.arguments.conflict_exception import ConflictException
from managed_exceptions.authorization.unauthenticated_exception import UnauthenticatedException
from managed_exceptions.authorization.unauthorized_exception import UnauthorizedException
from managed_exceptions.internal.internal_error_exception import InternalErrorException
from managed_exceptions.preconditions.failed_precondition_exception import FailedPreconditionException
from managed_exceptions.upstreams.deadline_exceeded_exception import DeadlineExceededException
from managed_exceptions.upstreams.malformed_response_exception import MalformedResponseException
from managed_exceptions.upstreams.unavailable_exception import UnavailableException
from managed_exceptions.upstreams.upstream_exception import UpstreamException

__all__ = [
    "ErrorDetails",
    "ManagedException",
    "ConflictException",
    "DeadlineExceededException",
    "FailedPreconditionException",
    "InvalidArgumentException",
    "ItemNotFoundException",
    "InternalErrorException",
    "MalformedResponseException",
    "UnauthenticatedException",
    "UnauthorizedException",
    "UnavailableException",
    "UpstreamException"
]
