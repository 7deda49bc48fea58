import logging
from typing import Optional

import httpx
from fastapi import Depends, Header, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db, get_redis
from ..exceptions import CredentialInactive, InvalidCredential, StoreUnavailable
from ..models.api_key import APIKey
from ..providers.clients import SummaryModelClient, create_model_client
from ..providers.github import GitHubClient
from ..services.admission import AdmissionGate, CredentialContext, DemoIdentity
from ..services.pipeline import SummarizerPipeline
from ..services.summarizer import SummarizationEngine
from ..utils.auth import APIKeyManager, admin_token_matches, key_preview
from ..utils.logging import mask_email
from ..utils.tokens import TokenManager

logger = logging.getLogger(__name__)

_http_client: Optional[httpx.AsyncClient] = None
_model_client: Optional[SummaryModelClient] = None


async def startup():
    """Create the shared HTTP and model clients."""
    global _http_client, _model_client

    _http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.github_timeout_seconds),
        follow_redirects=True,
    )
    _model_client = create_model_client(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        temperature=settings.llm_temperature,
        timeout=settings.llm_timeout_seconds,
    )


async def shutdown():
    """Release the shared clients."""
    global _http_client, _model_client

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    if _model_client is not None:
        await _model_client.close()
        _model_client = None


# -----------------------------------------------------------------------------
# Credentials
# -----------------------------------------------------------------------------


def get_credential_context(
    api_key: Optional[str] = Header(None, alias="x-api-key"),
    demo_user: Optional[str] = Header(None, alias="x-demo-user"),
    demo_token: Optional[str] = Header(None, alias="x-demo-token"),
) -> CredentialContext:
    """Collect the caller's credentials from request headers.

    The demo email is only as trustworthy as whoever set the header. With
    ``demo_require_token`` off it is accepted as asserted by the upstream
    session layer; with it on, a signed demo token for the same email is
    required.
    """
    api_key = (api_key or "").strip() or None
    email = (demo_user or "").strip()

    demo_identity = None
    if email and api_key is None:
        if settings.demo_require_token:
            verified_email = (
                TokenManager().verify_demo_token(demo_token) if demo_token else None
            )
            if verified_email != email:
                logger.info(f"Rejected unverified demo identity {mask_email(email)}")
                raise InvalidCredential("Demo session could not be verified")
            demo_identity = DemoIdentity(email=email, trusted_via="signed-token")
        else:
            demo_identity = DemoIdentity(email=email, trusted_via="upstream-header")

    return CredentialContext(api_key=api_key, demo_identity=demo_identity)


def get_current_api_key(
    api_key: Optional[str] = Header(None, alias="x-api-key"),
    db: Session = Depends(get_db),
) -> APIKey:
    """Resolve the caller's API key without consuming quota."""
    if not api_key or not api_key.strip():
        raise InvalidCredential()

    try:
        record = APIKeyManager(db, get_redis()).verify_api_key(api_key)
    except SQLAlchemyError as e:
        logger.error(f"API key lookup failed: {e}")
        raise StoreUnavailable() from e

    if record is None:
        logger.info(f"No matching API key found for {key_preview(api_key)}")
        raise InvalidCredential()
    if not record.is_active:
        raise CredentialInactive()
    return record


def require_admin(admin_token: Optional[str] = Header(None, alias="x-admin-token")):
    """Guard for key management routes."""
    if not settings.admin_token:
        raise HTTPException(status_code=403, detail="Key management is disabled")
    if not admin_token_matches(admin_token):
        raise HTTPException(status_code=403, detail="Invalid admin token")


# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------


def get_admission_gate(db: Session = Depends(get_db)) -> AdmissionGate:
    return AdmissionGate(db, get_redis())


def get_github_client() -> GitHubClient:
    assert _http_client is not None, "startup() was not called"
    return GitHubClient(
        client=_http_client,
        api_url=settings.github_api_url,
        token=settings.github_token,
        readme_max_chars=settings.readme_max_chars,
    )


def get_summarization_engine() -> SummarizationEngine:
    return SummarizationEngine(_model_client)


def get_pipeline(
    db: Session = Depends(get_db),
    gate: AdmissionGate = Depends(get_admission_gate),
    github: GitHubClient = Depends(get_github_client),
    engine: SummarizationEngine = Depends(get_summarization_engine),
) -> SummarizerPipeline:
    return SummarizerPipeline(db=db, gate=gate, github=github, engine=engine)
