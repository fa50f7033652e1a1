# networth/services/constants.py
"""
Centralized constants for the net-worth engine services.

Single source of truth for cache key layout, the stale fallback window,
error classification tables and the valuation defaults applied when an
input is missing.

Usage:
    from networth.services.constants import (
        STALE_FALLBACK_DAYS,
        OFFLINE_ERROR_CODES,
        DEFAULT_FX_RATE,
    )
"""

from decimal import Decimal


# =============================================================================
# PRICE CACHE
# =============================================================================

# Key layout: "<kind>:<key>:<YYYY-MM-DD>"
PRICE_CACHE_KIND: str = "price"
FX_CACHE_KIND: str = "fx"
CACHE_KEY_SEPARATOR: str = ":"

# Calendar days scanned (most recent first) when a live fetch fails.
# Covers weekends and bank holidays; the day of the failure is not counted.
STALE_FALLBACK_DAYS: int = 7


# =============================================================================
# VALUATION DEFAULTS
# =============================================================================

# Used when a conversion rate could not be obtained at all
DEFAULT_FX_RATE: Decimal = Decimal("1")

# Cash holdings are priced at exactly one unit of their own currency
CASH_UNIT_PRICE: Decimal = Decimal("1")

ZERO: Decimal = Decimal("0")
ONE_HUNDRED: Decimal = Decimal("100")


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

# Maximum length of a surfaced error message before truncation
MAX_ERROR_MESSAGE_LENGTH: int = 200

# Low-level network failure codes (Node-style names and errno names)
OFFLINE_ERROR_CODES: frozenset[str] = frozenset({
    "ECONNRESET",
    "ECONNREFUSED",
    "ENOTFOUND",
    "ETIMEDOUT",
    "EPIPE",
    "EAI_AGAIN",
    "ENETUNREACH",
    "EHOSTUNREACH",
    "FETCH_ERROR",
})

# HTTP statuses worth retrying later; treated as "offline"
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

# Lower-case substrings of messages that indicate connectivity problems
OFFLINE_MESSAGE_PATTERNS: tuple[str, ...] = (
    "network request failed",
    "network error",
    "failed to fetch",
    "socket hang up",
    "socket timeout",
    "request timeout",
    "econnrefused",
    "econnreset",
    "etimedout",
    "enotfound",
)

# Lower-case substrings of messages that indicate a provider/data problem
API_ERROR_MESSAGE_PATTERNS: tuple[str, ...] = (
    "invalid json",
    "unexpected token",
    "not found",
    "no data",
    "validation",
    "invalid symbol",
    "no results",
)

# Keywords in a TypeError message that point at a transport failure
TRANSPORT_TYPE_ERROR_KEYWORDS: tuple[str, ...] = ("fetch", "network", "abort")

DEFAULT_OFFLINE_MESSAGE: str = "Unable to connect. Check your internet connection."
DEFAULT_API_ERROR_MESSAGE: str = "Failed to fetch data from the market data provider."
DEFAULT_UNKNOWN_MESSAGE: str = "An unexpected error occurred."


# =============================================================================
# MARKET DATA
# =============================================================================

# Yahoo quotes some exchanges in minor units; (major currency, divisor)
MINOR_CURRENCY_UNITS: dict[str, tuple[str, Decimal]] = {
    "GBp": ("GBP", Decimal("100")),
    "GBX": ("GBP", Decimal("100")),
    "ZAc": ("ZAR", Decimal("100")),
    "ILA": ("ILS", Decimal("100")),
}
