"""Utility functions and classes."""

from .logging import get_logger, setup_logging
from .quota import Admitted, Rejected, needs_reset

__all__ = ["Admitted", "Rejected", "get_logger", "needs_reset", "setup_logging"]
