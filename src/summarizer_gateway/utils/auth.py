import secrets
import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import redis
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..config import settings
from ..models.api_key import APIKey
from ..schemas import APIKeyRequest, APIKeyResponse, APIKeyUpdate

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 3600


def hash_api_key(key: str) -> str:
    """Hash of the trimmed key string, as stored in ``api_keys.key_hash``."""
    return hashlib.sha256(key.strip().encode()).hexdigest()


def key_preview(key: Optional[str]) -> str:
    """Short prefix of a key that is safe to log."""
    return f"{key[:10]}..." if key else "empty"


def effective_limit(api_key: APIKey) -> int:
    """Quota ceiling of a key, falling back to the configured default."""
    return api_key.rate_limit or settings.default_rate_limit


def admin_token_matches(token: Optional[str]) -> bool:
    """Constant-time check of an admin token against the configured one."""
    if not settings.admin_token or not token:
        return False
    return hmac.compare_digest(token.encode(), settings.admin_token.encode())


class APIKeyManager:
    """Manages API key creation, lookup, caching and quota counters."""

    def __init__(self, db: Session, redis_client: Optional[redis.Redis] = None):
        self.db = db
        self.redis = redis_client

    def generate_api_key(self) -> tuple[str, str]:
        """Generate a new API key and its hash."""
        key = f"{settings.api_key_prefix}{secrets.token_urlsafe(24)}"
        return key, hash_api_key(key)

    def create_api_key(self, request: APIKeyRequest) -> APIKeyResponse:
        """Create a new API key."""
        key, key_hash = self.generate_api_key()
        key_id = f"ak_{uuid.uuid4().hex[:16]}"

        api_key = APIKey(
            id=key_id,
            owner_id=request.owner_id.strip(),
            name=request.name.strip(),
            description=(request.description or "").strip() or None,
            key_hash=key_hash,
            usage_count=0,
            rate_limit=request.rate_limit,
            is_active=True,
        )

        self.db.add(api_key)
        self.db.commit()
        self.db.refresh(api_key)

        self._cache_put(key_hash, api_key.id)
        logger.info(f"Created API key {api_key.id} for owner {api_key.owner_id}")

        return APIKeyResponse(
            id=api_key.id,
            name=api_key.name,
            key=key,  # Return the actual key only once
            owner_id=api_key.owner_id,
            description=api_key.description,
            created_at=api_key.created_at,
            rate_limit=effective_limit(api_key),
            usage_count=api_key.usage_count,
        )

    def verify_api_key(self, key: str) -> Optional[APIKey]:
        """Return the record for a key, active or not, or None if unknown."""
        key_hash = hash_api_key(key)

        cached_id = self._cache_get(key_hash)
        if cached_id:
            api_key = self.get_by_id(cached_id)
            if api_key is not None:
                return api_key

        api_key = self.db.query(APIKey).filter(APIKey.key_hash == key_hash).first()

        if api_key is not None:
            self._cache_put(key_hash, api_key.id)

        return api_key

    def get_by_id(self, key_id: str) -> Optional[APIKey]:
        return self.db.query(APIKey).filter(APIKey.id == key_id).first()

    def list_api_keys(self, owner_id: Optional[str] = None) -> List[APIKey]:
        query = self.db.query(APIKey)
        if owner_id:
            query = query.filter(APIKey.owner_id == owner_id)
        return query.order_by(APIKey.created_at.desc()).all()

    def update_api_key(self, key_id: str, request: APIKeyUpdate) -> Optional[APIKey]:
        api_key = self.get_by_id(key_id)
        if api_key is None:
            return None

        api_key.name = request.name.strip()
        api_key.description = (request.description or "").strip() or None
        api_key.is_active = request.is_active
        if request.rate_limit is not None:
            api_key.rate_limit = request.rate_limit

        self.db.commit()
        self.db.refresh(api_key)
        return api_key

    def deactivate(self, key_id: str) -> bool:
        """Soft delete - just mark as inactive."""
        api_key = self.get_by_id(key_id)
        if api_key is None:
            return False

        api_key.is_active = False
        self.db.commit()
        return True

    # -------------------------------------------------------------------------
    # Quota counters
    # -------------------------------------------------------------------------

    def try_consume(self, key_id: str) -> bool:
        """Atomically take one unit of quota.

        Returns False when the key is inactive or already at its limit. The
        check and the increment are a single UPDATE, so concurrent callers can
        never push ``usage_count`` past the limit.
        """
        stmt = (
            update(APIKey)
            .where(
                APIKey.id == key_id,
                APIKey.is_active == True,  # noqa: E712
                APIKey.usage_count
                < func.coalesce(APIKey.rate_limit, settings.default_rate_limit),
            )
            .values(usage_count=APIKey.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def release(self, key_id: str) -> bool:
        """Give back a unit taken by ``try_consume``."""
        stmt = (
            update(APIKey)
            .where(APIKey.id == key_id, APIKey.usage_count > 0)
            .values(usage_count=APIKey.usage_count - 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def current_usage(self, key_id: str) -> int:
        usage = (
            self.db.query(APIKey.usage_count).filter(APIKey.id == key_id).scalar()
        )
        return usage or 0

    def touch(self, key_id: str):
        """Record the time of the last completed request."""
        stmt = (
            update(APIKey)
            .where(APIKey.id == key_id)
            .values(last_used=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()

    # -------------------------------------------------------------------------
    # Redis cache (optional)
    # -------------------------------------------------------------------------

    def _cache_get(self, key_hash: str) -> Optional[str]:
        if not self.redis:
            return None
        try:
            return self.redis.get(f"api_key:{key_hash}")
        except redis.RedisError as e:
            logger.debug(f"Redis lookup failed: {e}")
            return None

    def _cache_put(self, key_hash: str, key_id: str):
        if not self.redis:
            return
        try:
            self.redis.setex(f"api_key:{key_hash}", CACHE_TTL_SECONDS, key_id)
        except redis.RedisError as e:
            logger.debug(f"Redis write failed: {e}")
