"""
Utility modules for the story reading engine
"""

from .logger import VERBOSE, get_logger, setup_logging

__all__ = [
    "VERBOSE",
    "get_logger",
    "setup_logging",
]
