# networth/utils/context.py
"""
Valuation cycle context.

Holds the identifier of the valuation cycle currently running so that log
records emitted anywhere below ValuationService.refresh() can be traced back
to the cycle that produced them.

Uses Python's contextvars for async-safe storage that automatically
propagates through await calls and into tasks created by asyncio.gather.

Usage:
    from networth.utils.context import get_cycle_id, set_cycle_id

    token = set_cycle_id("cycle-7")
    try:
        ...
    finally:
        reset_cycle_id(token)
"""

from contextvars import ContextVar, Token

# =============================================================================
# CONTEXT VARIABLES
# =============================================================================

_cycle_id_var: ContextVar[str | None] = ContextVar("cycle_id", default=None)


# =============================================================================
# CYCLE ID
# =============================================================================

def get_cycle_id() -> str | None:
    """
    Get the current valuation cycle id.

    Returns:
        The cycle id, or None outside of a refresh.
    """
    return _cycle_id_var.get()


def set_cycle_id(cycle_id: str) -> Token:
    """
    Set the cycle id for the current context.

    Args:
        cycle_id: Identifier for this valuation cycle

    Returns:
        Token to pass to reset_cycle_id() when the cycle ends
    """
    return _cycle_id_var.set(cycle_id)


def reset_cycle_id(token: Token) -> None:
    """Restore the cycle id that was active before set_cycle_id()."""
    _cycle_id_var.reset(token)
