"""Usage commit for requests that produced a summary."""

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.usage_log import UsageLog
from ..utils.auth import APIKeyManager
from ..utils.logging import get_logger
from .admission import Admitted, IdentityKind

logger = logging.getLogger(__name__)
events = get_logger("summarizer_gateway.usage")


def commit_usage(
    db: Session, admitted: Admitted, repository: str, used_fallback: bool
) -> bool:
    """Record a completed request against the quota that admitted it.

    The quota unit itself was taken at admission; this stamps the key's
    last use and appends a usage log row. Failures are logged and swallowed
    because the caller already has its summary.
    """
    try:
        if admitted.identity_kind is IdentityKind.API_KEY:
            APIKeyManager(db).touch(admitted.identity_ref)

        db.add(
            UsageLog(
                id=f"log_{uuid.uuid4().hex[:16]}",
                subject_kind=admitted.identity_kind.value,
                subject_ref=admitted.identity_ref,
                repository=repository,
                used_fallback=used_fallback,
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to commit usage for {admitted.log_ref}: {e}")
        return False

    events.info(
        "usage_committed",
        kind=admitted.identity_kind.value,
        ref=admitted.identity_ref,
        usage=admitted.current_usage,
        limit=admitted.limit,
        repository=repository,
        fallback=used_fallback,
    )
    return True
