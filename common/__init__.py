"""Common utilities for NewsDesk."""

from common.logger import setup_logging

__all__ = ["setup_logging"]
