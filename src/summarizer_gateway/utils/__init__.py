"""Utility functions and classes."""

from .auth import APIKeyManager
from .demo import DemoUsageManager
from .logging import get_logger, setup_logging
from .tokens import TokenManager

__all__ = [
    "APIKeyManager",
    "DemoUsageManager",
    "TokenManager",
    "get_logger",
    "setup_logging",
]
