from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any
from datetime import datetime


# =============================================================================
# Summarizer Schemas
# =============================================================================


class SummarizeRequest(BaseModel):
    """Repository summarization request."""

    model_config = ConfigDict(populate_by_name=True)

    github_url: Optional[str] = Field(
        None,
        alias="githubUrl",
        description="Repository URL, e.g. https://github.com/owner/repo",
    )


class SummarizeResponse(BaseModel):
    """Repository summary."""

    summary: str
    cool_facts: List[str]
    warning: Optional[str] = Field(
        None, description="Present only when the fallback summary was used"
    )


# =============================================================================
# API Key Schemas
# =============================================================================


class APIKeyRequest(BaseModel):
    """Request to create new API key."""

    name: str = Field(..., min_length=1, description="Friendly name for the API key")
    owner_id: str = Field(..., min_length=1, description="Owning account")
    description: Optional[str] = Field(None, description="Optional description")
    rate_limit: Optional[int] = Field(
        None, gt=0, description="Quota ceiling; the default applies when unset"
    )


class APIKeyUpdate(BaseModel):
    """Request to update an API key."""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    is_active: bool = True
    rate_limit: Optional[int] = Field(None, gt=0)


class APIKeyResponse(BaseModel):
    """API key creation response."""

    id: str
    name: str
    key: str
    owner_id: str
    description: Optional[str]
    created_at: Optional[datetime]
    rate_limit: int
    usage_count: int


class APIKeyInfo(BaseModel):
    """API key information (without the actual key)."""

    id: str
    name: str
    owner_id: str
    description: Optional[str]
    created_at: Optional[datetime]
    last_used: Optional[datetime] = None
    is_active: bool
    rate_limit: int
    usage_count: int


class ValidateRequest(BaseModel):
    """Request to check an API key."""

    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(None, alias="apiKey")


class ValidateResponse(BaseModel):
    """Result of a successful key check."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Valid API key"
    name: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")


# =============================================================================
# Usage Schemas
# =============================================================================


class UsageResponse(BaseModel):
    """Usage statistics response."""

    api_key_id: str
    usage: int
    limit: int
    remaining: int
    total_summaries: int
    fallback_summaries: int
    recent: List[Dict[str, Any]]


# =============================================================================
# Error Schemas
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str


class QuotaErrorResponse(ErrorResponse):
    """Error response for exhausted quotas."""

    usage: int
    limit: int
