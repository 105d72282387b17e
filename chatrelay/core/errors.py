"""Error codes, status labels and exceptions for chatrelay."""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Codes carried by every exception that reaches the caller.

    Also used as the ``error_code`` label in logs and metrics.
    """
    # Rejected before any network call
    INVALID_ENDPOINT = "INVALID_ENDPOINT"
    MISSING_API_KEY = "MISSING_API_KEY"
    EMPTY_MESSAGES = "EMPTY_MESSAGES"

    # Provider answered with a non-2xx status
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"
    CLIENT_ERROR = "CLIENT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"

    # No usable answer at all
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"

    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @classmethod
    def for_status(cls, status_code: int) -> "ErrorCode":
        """Code for a non-2xx provider status."""
        special = {401: cls.UNAUTHORIZED, 429: cls.RATE_LIMITED}
        if status_code in special:
            return special[status_code]
        if 400 <= status_code < 500:
            return cls.CLIENT_ERROR
        if status_code >= 500:
            return cls.SERVER_ERROR
        return cls.INTERNAL_ERROR


# Statuses reported as-is in metric labels; others collapse into a class.
TRACKED_STATUSES = frozenset({200, 400, 401, 403, 404, 429, 500, 502, 503, 504})

NETWORK_STATUS_LABEL = "network_error"
TIMEOUT_STATUS_LABEL = "timeout"


def status_label(status_code: Optional[int]) -> str:
    """Bounded-cardinality label for an upstream status.

    The exact code stays available on the exception and in the log line.
    """
    if status_code is None:
        return "unknown"
    if status_code in TRACKED_STATUSES:
        return str(status_code)
    if 400 <= status_code < 600:
        return f"{status_code // 100}xx"
    return "unknown"


class ChatRelayError(Exception):
    """Base class for every error chatrelay lets reach the caller.

    The message is meant to be shown to the user as-is.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InputValidationError(ChatRelayError, ValueError):
    """Bad endpoint, empty key or empty message list. Never retried."""


class NetworkUnreachableError(ChatRelayError):
    """Connection-level failure (DNS, refused connection, proxy/CORS block)."""

    code = ErrorCode.NETWORK_ERROR

    DEFAULT_MESSAGE = (
        "Network error: Unable to connect to API. "
        "Check your internet connection and CORS settings."
    )

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.DEFAULT_MESSAGE)


class RequestTimeoutError(ChatRelayError):
    """The call exceeded its configured timeout."""

    code = ErrorCode.TIMEOUT

    def __init__(self, timeout_ms: int):
        super().__init__(f"Request timeout after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class UpstreamHTTPError(ChatRelayError):
    """Provider answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, ErrorCode.for_status(status_code))
        self.status_code = status_code
        self.retry_after = retry_after


class DecryptionError(ChatRelayError):
    """Wrong master password, corrupted blob or tampered ciphertext."""

    code = ErrorCode.DECRYPTION_FAILED

    def __init__(self, message: str = "Failed to decrypt. Invalid password or corrupted data."):
        super().__init__(message)
