# networth/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

This module provides:
- Currency code validation
- Symbol normalization
- Postcode normalization for house price index lookups
"""

import re

# =============================================================================
# CONSTANTS
# =============================================================================

# Currency: ISO 4217 format (3 uppercase letters)
CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')

_WHITESPACE = re.compile(r'\s+')


# =============================================================================
# CURRENCY VALIDATION
# =============================================================================

def validate_currency(value: str) -> str:
    """
    Validate and normalize a currency code.

    Args:
        value: Raw currency input (e.g., "gbp", " USD ")

    Returns:
        Uppercase ISO 4217 code

    Raises:
        ValueError: If not three letters
    """
    if not value:
        raise ValueError("Currency cannot be empty")

    normalized = value.strip().upper()

    if not CURRENCY_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid currency code: '{value}'. "
            "Must be 3 letters (ISO 4217 format, e.g., USD, EUR, GBP)"
        )

    return normalized


# =============================================================================
# SYMBOL / POSTCODE
# =============================================================================

def normalize_symbol(value: str) -> str:
    """Trim a symbol; case is preserved since some providers are case-sensitive."""
    return value.strip()


def normalize_postcode(value: str) -> str:
    """
    Normalize a postcode for index lookups.

    Example:
        >>> normalize_postcode(" sw1a 1aa ")
        'SW1A1AA'
    """
    return _WHITESPACE.sub("", value).upper()
