"""GitHub repository summaries behind API keys and demo quotas."""

__version__ = "1.0.0"
