"""Small utilities shared across clubinvest."""

from .logging import setup_logging

__all__ = ["setup_logging"]
