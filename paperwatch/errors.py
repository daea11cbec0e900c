"""
Error taxonomy for the arXiv client and the subscription worker.

Network and timeout faults plus throttling/server statuses are retryable.
Other client statuses fail fast. Persistence and owner lookups surface as
per-subscription failures inside the worker.
"""
import asyncio
import httpx

RETRYABLE_STATUS_CODES = frozenset({
    408,  # Request Timeout
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
})

NETWORK_ERROR_MARKERS = (
    "fetch failed",
    "network error",
    "econnreset",
    "econnrefused",
    "etimedout",
    "enotfound",
    "connection reset",
    "name or service not known",
    "socket hang up",
)


class PaperwatchError(Exception):
    """Base class for all errors raised by this package."""


class ArxivApiError(PaperwatchError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedStatus(ArxivApiError):
    """HTTP 408/429/5xx from arXiv."""


class ClientFault(ArxivApiError):
    """Any other non-success HTTP status."""


class NetworkFault(PaperwatchError):
    """Connection reset, refused or DNS failure."""


class TimeoutFault(NetworkFault):
    pass


class PersistenceFault(PaperwatchError):
    pass


class OwnerNotFound(PaperwatchError):
    def __init__(self, user_id: int):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


def error_for_status(status_code: int, body: str = "") -> ArxivApiError:
    """Map a non-success HTTP status to the matching ArxivApiError subclass."""
    snippet = body.strip().replace("\n", " ")[:200]
    message = f"arXiv API returned HTTP {status_code}"
    if snippet:
        message = f"{message}: {snippet}"
    if is_retryable_status(status_code):
        return RateLimitedStatus(message, status_code=status_code)
    return ClientFault(message, status_code=status_code)


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES


def is_network_error(error: BaseException) -> bool:
    if isinstance(error, (NetworkFault, httpx.TransportError, asyncio.TimeoutError, ConnectionError)):
        return True
    text = f"{type(error).__name__} {error}".lower()
    return any(marker in text for marker in NETWORK_ERROR_MARKERS)


def is_retryable_error(error: BaseException) -> bool:
    """Retry predicate used by the arXiv client."""
    if isinstance(error, ArxivApiError):
        return error.status_code is not None and is_retryable_status(error.status_code)
    if isinstance(error, httpx.HTTPStatusError):
        return is_retryable_status(error.response.status_code)
    return is_network_error(error)


def get_error_message(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    return "An unknown error occurred"
