"""Error taxonomy for the summarizer gateway.

Every error carries the HTTP status it maps to and a message that is safe to
show to callers. The exception handlers in ``main`` turn them into
``{"error": ...}`` bodies.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SummarizerGatewayError(Exception):
    """Base exception for the entire application."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def reason(self) -> str:
        return type(self).__name__

    def extra(self) -> Dict[str, Any]:
        """Additional fields echoed in the error body."""
        return {}


# ── Admission ───────────────────────────────────────────────────────────────


class InvalidCredential(SummarizerGatewayError):
    """No credential, or an API key that matches no record."""

    status_code = 401
    default_message = "Invalid API key"


class CredentialInactive(SummarizerGatewayError):
    """The API key exists but has been deactivated."""

    status_code = 401
    default_message = "API key is inactive"


class QuotaExceeded(SummarizerGatewayError):
    """The credential has no quota left."""

    status_code = 429
    default_message = "Rate limit exceeded"

    def __init__(self, usage: int, limit: int, message: Optional[str] = None) -> None:
        self.usage = usage
        self.limit = limit
        super().__init__(message)

    def extra(self) -> Dict[str, Any]:
        return {"usage": self.usage, "limit": self.limit}


# ── Input validation ────────────────────────────────────────────────────────


class MalformedRepositoryUrl(SummarizerGatewayError):
    """The supplied URL does not point to a GitHub repository."""

    status_code = 400
    default_message = (
        "Invalid GitHub URL format. Expected: https://github.com/owner/repo"
    )


# ── GitHub ──────────────────────────────────────────────────────────────────


class RepositoryNotFound(SummarizerGatewayError):
    """GitHub answered 404 for the repository."""

    status_code = 404
    default_message = "Repository not found"


class UpstreamFetchFailed(SummarizerGatewayError):
    """GitHub answered with an error status or could not be reached."""

    default_message = "Failed to fetch repository data"

    def __init__(self, status_code: int = 502, message: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


# ── Language model ──────────────────────────────────────────────────────────


class ModelInvocationFailed(SummarizerGatewayError):
    """The language model call failed; recovered by the fallback summary."""

    status_code = 502
    default_message = "AI generation failed"


# ── Infrastructure ──────────────────────────────────────────────────────────


class StoreUnavailable(SummarizerGatewayError):
    """The credential or quota store is misconfigured or unreachable."""

    status_code = 500
    default_message = "Server configuration error"


class UnexpectedFailure(SummarizerGatewayError):
    """Catch-all for anything not covered above."""

    status_code = 500
    default_message = "Internal server error"
