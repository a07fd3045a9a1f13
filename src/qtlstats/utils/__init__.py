"""Utility helpers (logging configuration)."""

from qtlstats.utils.logging import CONSOLE_FORMAT, setup_logging

__all__ = ["CONSOLE_FORMAT", "setup_logging"]
