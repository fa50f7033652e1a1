# networth/utils/__init__.py
"""
Utility modules for the net-worth engine.

This package contains cross-cutting utilities used throughout the engine:
- logging: Logging configuration with valuation cycle id support
- context: Cycle id context variable
- date_utils: UTC date keys and trailing-window iteration

Usage:
    from networth.utils import setup_logging
    from networth.utils import get_cycle_id, set_cycle_id
    from networth.utils.date_utils import date_key
"""

from networth.utils.context import get_cycle_id, set_cycle_id, reset_cycle_id
from networth.utils.logging import build_handler, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "build_handler",
    # Context
    "get_cycle_id",
    "set_cycle_id",
    "reset_cycle_id",
]
