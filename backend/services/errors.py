"""Error taxonomy and user-facing error catalog.

Validation and configuration errors propagate to the caller verbatim.
Errors raised by the Gemini client are classified into a small set of
kinds and only the fixed message for that kind is ever shown to users;
the raw error goes to the logs.
"""
from enum import Enum
from typing import Any, Dict, Optional

# Error codes carried by ApiError
RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
NETWORK_ERROR = "NETWORK_ERROR"
TIMEOUT_ERROR = "TIMEOUT_ERROR"
API_ERROR = "API_ERROR"
NO_RESPONSE = "NO_RESPONSE"
RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"

TRANSIENT_STATUS_CODES = (429, 503)


class ChatbotError(Exception):
    """Base class for all chatbot errors."""


class InvalidInputError(ChatbotError, ValueError):
    """Raised when the user id or message is empty or not a string."""


class ConfigError(ChatbotError, ValueError):
    """Raised when required configuration (prompt, API key) is missing."""


class ApiError(ChatbotError):
    """Failure talking to the Gemini endpoint."""

    def __init__(
        self,
        message: str,
        code: str = API_ERROR,
        status_code: Optional[int] = None,
        transient: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.transient = transient
        self.details = details or {}
        super().__init__(message)

    @classmethod
    def from_status(cls, status_code: int, body: str = "") -> "ApiError":
        """Build the error for a non-200 HTTP response."""
        if status_code == 429:
            code = RATE_LIMIT_ERROR
        elif status_code == 503:
            code = SERVICE_UNAVAILABLE
        else:
            code = API_ERROR
        return cls(
            f"Gemini API request failed with status {status_code}",
            code=code,
            status_code=status_code,
            transient=status_code in TRANSIENT_STATUS_CODES,
            details={"body": body[:500]},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "transient": self.transient,
            "details": self.details,
        }


class NoResponseError(ApiError):
    """The endpoint answered 200 but the reply text was missing."""

    def __init__(self, message: str = "No response text from Gemini API", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=NO_RESPONSE, status_code=200, details=details)


class RetriesExhaustedError(ApiError):
    """Every attempt failed with a transient error."""

    def __init__(self, attempts: int, last_error: ApiError):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Gemini API call failed {attempts} times: {last_error.message}",
            code=RETRIES_EXHAUSTED,
            status_code=last_error.status_code,
            transient=True,
            details={"attempts": attempts, "last_error": last_error.to_dict()},
        )


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NETWORK = "network"
    TIMEOUT = "timeout"
    API = "api"
    GENERIC = "generic"


USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.RATE_LIMITED: (
        "I'm receiving a lot of requests right now. "
        "Please wait about 30 seconds and try again."
    ),
    ErrorKind.SERVICE_UNAVAILABLE: (
        "The AI service is temporarily unavailable. Please try again in a few minutes."
    ),
    ErrorKind.NETWORK: (
        "A network error occurred. Please check your internet connection."
    ),
    ErrorKind.TIMEOUT: "The response took too long. Please try again.",
    ErrorKind.API: (
        "The AI API is having problems. Please contact your administrator."
    ),
    ErrorKind.GENERIC: "Something went wrong. Please try again later.",
}

_KIND_BY_CODE: Dict[str, ErrorKind] = {
    RATE_LIMIT_ERROR: ErrorKind.RATE_LIMITED,
    SERVICE_UNAVAILABLE: ErrorKind.SERVICE_UNAVAILABLE,
    NETWORK_ERROR: ErrorKind.NETWORK,
    TIMEOUT_ERROR: ErrorKind.TIMEOUT,
    API_ERROR: ErrorKind.API,
    NO_RESPONSE: ErrorKind.API,
}


def classify_error(error: BaseException) -> ErrorKind:
    """Map an exception to the kind of user-facing message it deserves."""
    if isinstance(error, RetriesExhaustedError):
        error = error.last_error
    if isinstance(error, ApiError):
        return _KIND_BY_CODE.get(error.code, ErrorKind.API)
    return ErrorKind.GENERIC


def user_message_for(error: BaseException) -> str:
    return USER_MESSAGES[classify_error(error)]
