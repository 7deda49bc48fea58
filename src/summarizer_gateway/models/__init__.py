"""Database models for the summarizer gateway."""

from .api_key import APIKey
from .demo_usage import DemoUsage
from .usage_log import UsageLog

__all__ = ["APIKey", "DemoUsage", "UsageLog"]
