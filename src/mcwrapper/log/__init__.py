"""
Logging module for the wrapper.
This module provides functionality to set up console and file logging.
"""

from .setup import setup_logging

__all__ = ["setup_logging"]
