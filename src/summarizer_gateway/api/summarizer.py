"""Repository summarization endpoint."""

import logging

from fastapi import APIRouter, Depends

from ..schemas import ErrorResponse, QuotaErrorResponse, SummarizeRequest, SummarizeResponse
from ..services.admission import CredentialContext
from ..services.pipeline import SummarizerPipeline
from .dependencies import get_credential_context, get_pipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1", tags=["Summarizer"])


@router.post(
    "/github-summarizer",
    response_model=SummarizeResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse, "description": "Missing or malformed GitHub URL"},
        401: {"model": ErrorResponse, "description": "Invalid or inactive credential"},
        404: {"model": ErrorResponse, "description": "Repository not found"},
        429: {"model": QuotaErrorResponse, "description": "Quota exhausted"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
)
async def summarize_repository(
    request: SummarizeRequest,
    credentials: CredentialContext = Depends(get_credential_context),
    pipeline: SummarizerPipeline = Depends(get_pipeline),
):
    """Summarize a public GitHub repository.

    Authenticate with ``x-api-key``, or with ``x-demo-user`` for the free
    trial. When the language model is unavailable the response is built from
    repository metadata and carries a ``warning``.
    """
    outcome = await pipeline.run(credentials, request.github_url)

    return SummarizeResponse(
        summary=outcome.result.summary,
        cool_facts=outcome.result.cool_facts,
        warning=outcome.warning,
    )
