# networth/services/errors.py
"""
Error classification for market data failures.

Maps any raised failure (network exceptions, HTTP client errors, provider
exceptions, plain strings) to one of three user-facing categories:

    OFFLINE    - connectivity problem or transient server condition;
                 the user should check their connection or try again later
    API_ERROR  - the provider answered but the answer was unusable
                 (unknown symbol, bad payload, 4xx)
    UNKNOWN    - anything else

Classification order (first match wins):
    1. Domain exceptions from networth.services.exceptions
    2. Network failure codes (``code`` attribute or OSError errno name)
    3. HTTP status (``status``, ``status_code`` or nested ``response``)
    4. TypeError mentioning fetch/network/abort
    5. Offline message patterns
    6. Provider/parse message patterns
    7. The chained ``__cause__``

Usage:
    from networth.services.errors import classify_error, create_portfolio_error

    try:
        quote = await source.get_quote("AAPL")
    except Exception as e:
        error = create_portfolio_error(e, symbol="AAPL")
        if error.type is ErrorType.OFFLINE:
            ...
"""

import enum
import errno
import socket
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeGuard

from networth.services.constants import (
    API_ERROR_MESSAGE_PATTERNS,
    DEFAULT_API_ERROR_MESSAGE,
    DEFAULT_OFFLINE_MESSAGE,
    DEFAULT_UNKNOWN_MESSAGE,
    MAX_ERROR_MESSAGE_LENGTH,
    OFFLINE_ERROR_CODES,
    OFFLINE_MESSAGE_PATTERNS,
    RETRYABLE_STATUS_CODES,
    TRANSPORT_TYPE_ERROR_KEYWORDS,
)
from networth.services.exceptions import (
    FXProviderError,
    PortfolioFetchError,
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from networth.utils.date_utils import utc_now


class ErrorType(str, enum.Enum):
    OFFLINE = "OFFLINE"
    API_ERROR = "API_ERROR"
    UNKNOWN = "UNKNOWN"


_DEFAULT_MESSAGES: dict[ErrorType, str] = {
    ErrorType.OFFLINE: DEFAULT_OFFLINE_MESSAGE,
    ErrorType.API_ERROR: DEFAULT_API_ERROR_MESSAGE,
    ErrorType.UNKNOWN: DEFAULT_UNKNOWN_MESSAGE,
}


@dataclass(frozen=True)
class PortfolioError:
    """
    A classified failure ready for display.

    Attributes:
        type: Category from classify_error()
        message: Human-readable message (at most 200 chars + "...")
        symbol: Symbol or currency pair the failure relates to, if any
        timestamp: When the error was created (UTC)
    """
    type: ErrorType
    message: str
    symbol: str | None = None
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def is_offline(self) -> bool:
        return self.type is ErrorType.OFFLINE


# =============================================================================
# CLASSIFICATION
# =============================================================================

def classify_error(error: Any) -> ErrorType:
    """
    Classify a raised failure into an ErrorType.

    Args:
        error: Exception, string, mapping or None

    Returns:
        ErrorType, never raises
    """
    return _classify(error, seen=set())


def _classify(error: Any, seen: set[int]) -> ErrorType:
    if error is None or id(error) in seen:
        return ErrorType.UNKNOWN
    seen.add(id(error))

    if isinstance(error, PortfolioError):
        return error.type

    if isinstance(error, PortfolioFetchError):
        return error.error.type

    if isinstance(error, RateLimitError):
        return ErrorType.OFFLINE

    if isinstance(error, TickerNotFoundError):
        return ErrorType.API_ERROR

    if isinstance(error, ProviderUnavailableError):
        cause_type = _classify(error.__cause__, seen)
        return cause_type if cause_type is not ErrorType.UNKNOWN else ErrorType.OFFLINE

    if isinstance(error, FXProviderError) and error.__cause__ is not None:
        cause_type = _classify(error.__cause__, seen)
        if cause_type is not ErrorType.UNKNOWN:
            return cause_type

    code = _extract_error_code(error)
    if code is not None and code.upper() in OFFLINE_ERROR_CODES:
        return ErrorType.OFFLINE

    if isinstance(error, (ConnectionError, TimeoutError, socket.gaierror)):
        return ErrorType.OFFLINE

    status = _extract_status(error)
    if status is not None:
        if status in RETRYABLE_STATUS_CODES:
            return ErrorType.OFFLINE
        if status >= 400:
            return ErrorType.API_ERROR

    message = _raw_message(error).lower()

    if isinstance(error, TypeError) and any(k in message for k in TRANSPORT_TYPE_ERROR_KEYWORDS):
        return ErrorType.OFFLINE

    if any(pattern in message for pattern in OFFLINE_MESSAGE_PATTERNS):
        return ErrorType.OFFLINE

    if any(pattern in message for pattern in API_ERROR_MESSAGE_PATTERNS):
        return ErrorType.API_ERROR

    if isinstance(error, BaseException):
        return _classify(error.__cause__, seen)

    return ErrorType.UNKNOWN


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _extract_error_code(error: Any) -> str | None:
    """Network failure code from a ``code`` attribute or an OSError errno."""
    code = _get(error, "code")
    if isinstance(code, str):
        return code

    if isinstance(error, OSError) and error.errno is not None:
        return errno.errorcode.get(error.errno)

    return None


def _extract_status(error: Any) -> int | None:
    """HTTP status from the error itself or its ``response``."""
    if isinstance(error, str):
        return None

    for candidate in (error, _get(error, "response")):
        if candidate is None:
            continue
        for attr in ("status", "status_code"):
            value = _get(candidate, attr)
            # bool is an int subclass
            if isinstance(value, int) and not isinstance(value, bool):
                return value
    return None


def _raw_message(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error)
    message = _get(error, "message")
    return message if isinstance(message, str) else ""


# =============================================================================
# MESSAGES & FACTORIES
# =============================================================================

def extract_error_message(error: Any, error_type: ErrorType | None = None) -> str:
    """
    Human-readable message for a failure.

    Plain strings are returned as-is. Exception messages are truncated to
    MAX_ERROR_MESSAGE_LENGTH characters plus "...". Anything without a
    message gets the default text for its category.

    Args:
        error: The raw failure
        error_type: Category, classified from error when omitted
    """
    if isinstance(error, str) and error:
        return error

    if isinstance(error, PortfolioFetchError):
        return error.error.message

    message = _raw_message(error).strip()
    if message:
        if len(message) > MAX_ERROR_MESSAGE_LENGTH:
            return message[:MAX_ERROR_MESSAGE_LENGTH] + "..."
        return message

    if error_type is None:
        error_type = classify_error(error)
    return _DEFAULT_MESSAGES[error_type]


def create_portfolio_error(error: Any, symbol: str | None = None) -> PortfolioError:
    """
    Classify a raw failure and wrap it as a PortfolioError.

    Args:
        error: The raw failure
        symbol: Symbol or currency pair to attach

    Returns:
        PortfolioError stamped with the current UTC time
    """
    if isinstance(error, PortfolioFetchError):
        return PortfolioError(
            type=error.error.type,
            message=error.error.message,
            symbol=symbol or error.error.symbol,
        )

    error_type = classify_error(error)
    return PortfolioError(
        type=error_type,
        message=extract_error_message(error, error_type),
        symbol=symbol,
    )


# =============================================================================
# PREDICATES
# =============================================================================

def _type_of(error: Any) -> ErrorType:
    if isinstance(error, PortfolioError):
        return error.type
    return classify_error(error)


def is_retryable_error(error: Any) -> bool:
    """Whether trying again later may succeed (same as offline)."""
    return _type_of(error) is ErrorType.OFFLINE


def is_offline_error(error: Any) -> bool:
    return _type_of(error) is ErrorType.OFFLINE


def is_portfolio_error(value: Any) -> TypeGuard[PortfolioError]:
    return isinstance(value, PortfolioError)


def are_all_errors_offline(errors: Iterable[Any]) -> bool:
    """
    True when there is at least one error and every error is offline.

    Used to show a single "you are offline" banner instead of a list of
    per-symbol failures.
    """
    errors = list(errors)
    return bool(errors) and all(is_offline_error(e) for e in errors)
