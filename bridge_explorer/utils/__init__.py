"""Utility functions and helpers."""

from bridge_explorer.utils.deadline import Deadline
from bridge_explorer.utils.logging_setup import configure_logging

__all__ = ["Deadline", "configure_logging"]
