"""Usage statistics API routes for tracking API consumption."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ..database import get_db
from ..api.dependencies import get_current_api_key
from ..models import APIKey, UsageLog
from ..schemas import UsageResponse
from ..utils.auth import effective_limit

router = APIRouter(prefix="/v1/usage", tags=["Usage"])

RECENT_LIMIT = 10


@router.get("", response_model=UsageResponse)
async def get_usage(
    api_key: APIKey = Depends(get_current_api_key), db: Session = Depends(get_db)
):
    """Get quota and summary statistics for the authenticated API key."""
    logs = db.query(UsageLog).filter(
        UsageLog.subject_kind == "api_key", UsageLog.subject_ref == api_key.id
    )

    total_summaries = logs.count()
    fallback_summaries = logs.filter(UsageLog.used_fallback == True).count()  # noqa: E712
    recent = logs.order_by(UsageLog.timestamp.desc()).limit(RECENT_LIMIT).all()

    limit = effective_limit(api_key)
    return UsageResponse(
        api_key_id=api_key.id,
        usage=api_key.usage_count,
        limit=limit,
        remaining=api_key.remaining(limit),
        total_summaries=total_summaries,
        fallback_summaries=fallback_summaries,
        recent=[log.to_dict() for log in recent],
    )
