"""clubinvest: ledger engine for pooled investment clubs."""

__version__ = "0.1.0"
