# Error taxonomy for query execution and session handling.
from enum import Enum, auto


class ErrorCategory(Enum):
    USER_INPUT = auto()
    TRANSPORT = auto()
    SERVICE = auto()
    QUERY = auto()
    CONFIG = auto()
    AUTH = auto()
    INTERNAL = auto()


class SoraQLException(Exception):
    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, message: str, *, category: ErrorCategory | None = None):
        super().__init__(message)
        if category:
            self.category = category


class TransportError(SoraQLException):
    """Connection, DNS or timeout failure. Never retried."""
    category = ErrorCategory.TRANSPORT


class ServiceError(SoraQLException):
    """Structured error returned by the API."""
    category = ErrorCategory.SERVICE

    def __init__(self, code: str, message: str):
        super().__init__(f"API error [{code}]: {message}")
        self.code = code
        self.message = message


class HTTPStatusError(SoraQLException):
    """HTTP >= 400 without a structured error body."""
    category = ErrorCategory.SERVICE

    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status} error: {body}")
        self.status = status
        self.body = body


class ResponseFormatError(SoraQLException):
    category = ErrorCategory.SERVICE


class QueryFailedError(SoraQLException):
    category = ErrorCategory.QUERY

    def __init__(self, body: str):
        super().__init__(f"query failed: {body}")
        self.body = body


class QueryTimeoutError(SoraQLException):
    category = ErrorCategory.QUERY

    def __init__(self, last_status: str):
        super().__init__(f"query did not complete within timeout, final status: {last_status}")
        self.last_status = last_status


class QueryCancelled(SoraQLException):
    """Raised when the user aborts a query while it is being waited on."""
    category = ErrorCategory.USER_INPUT

    def __init__(self, message: str = "query cancelled by user"):
        super().__init__(message)


class TimeWindowError(SoraQLException):
    category = ErrorCategory.USER_INPUT


class TimeFormatError(TimeWindowError):
    pass


class TimeOutOfRangeError(TimeWindowError):
    pass


class TimeRangeError(TimeWindowError):
    pass


class ConfigError(SoraQLException):
    category = ErrorCategory.CONFIG


class AuthenticationError(SoraQLException):
    category = ErrorCategory.AUTH


__all__ = [
    'ErrorCategory', 'SoraQLException', 'TransportError', 'ServiceError', 'HTTPStatusError',
    'ResponseFormatError', 'QueryFailedError', 'QueryTimeoutError', 'QueryCancelled',
    'TimeWindowError', 'TimeFormatError', 'TimeOutOfRangeError', 'TimeRangeError',
    'ConfigError', 'AuthenticationError'
]
