"""Net-worth valuation engine with a daily price/FX cache."""

__version__ = "0.1.0"
