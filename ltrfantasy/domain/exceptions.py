"""Exception hierarchy for the data layer.

Only ``MaxRetryError`` is expected to cross the fetch client boundary; the
other ``ApiError`` subclasses describe individual failed attempts and are
retried. Storage problems never surface as exceptions.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of a failed fetch attempt."""
    HTTP_STATUS = "http_status"
    EMPTY_RESPONSE = "empty_response"
    INVALID_RESPONSE = "invalid_response"
    API_ERROR = "api_error"
    NETWORK = "network"
    RETRIES_EXHAUSTED = "retries_exhausted"
    UNKNOWN = "unknown"


class LtrFantasyError(Exception):
    """Base class for all errors raised by ltrfantasy."""


class ApiError(LtrFantasyError):
    """A single request to the remote API failed."""
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(message)


class HttpStatusError(ApiError):
    """The server answered with a non-2xx status."""
    kind = ErrorKind.HTTP_STATUS

    def __init__(self, url: str, status_code: int):
        self.status_code = status_code
        super().__init__(url, f"HTTP error! status: {status_code} for {url}")


class EmptyResponseError(ApiError):
    """The response carried no body or a JSON null."""
    kind = ErrorKind.EMPTY_RESPONSE

    def __init__(self, url: str):
        super().__init__(url, f"No data received from {url}")


class InvalidResponseError(ApiError):
    """The response body was not valid JSON."""
    kind = ErrorKind.INVALID_RESPONSE

    def __init__(self, url: str, detail: str):
        super().__init__(url, f"Invalid JSON from {url}: {detail}")


class ApiEnvelopeError(ApiError):
    """The body is an application-level error envelope (``{"error": ...}``)."""
    kind = ErrorKind.API_ERROR

    def __init__(self, url: str, api_message: str):
        self.api_message = api_message
        super().__init__(url, f"ESPN API error: {api_message}")


class NetworkError(ApiError):
    """Transport failure: DNS, connection reset, timeout..."""
    kind = ErrorKind.NETWORK

    def __init__(self, url: str, original: Exception):
        self.original_exception = original
        super().__init__(url, f"Network error for {url}: {type(original).__name__}: {original}")


class MaxRetryError(ApiError):
    """Exception raised when max retries are exceeded."""
    kind = ErrorKind.RETRIES_EXHAUSTED

    def __init__(self, url: str, attempts: int, last_error: Optional[Exception]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(url, f"Max retries ({attempts}) exceeded for {url}. Last error: {last_error}")

    @property
    def last_error_kind(self) -> ErrorKind:
        return getattr(self.last_error, "kind", ErrorKind.UNKNOWN)


class DataUnavailableError(LtrFantasyError):
    """The API answered but the expected data is missing."""


class SnapshotError(LtrFantasyError):
    """Reading or writing an exported snapshot file failed."""
