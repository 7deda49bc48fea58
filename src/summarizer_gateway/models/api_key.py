"""API Key model."""

from sqlalchemy import CheckConstraint, Column, String, Integer, Boolean, DateTime, Text
from sqlalchemy.sql import func
from ..database import Base


class APIKey(Base):
    """Issued API key with its quota counter.

    Only the SHA-256 of the key is stored. ``usage_count`` counts admitted
    summarization requests and never exceeds the key's limit; a NULL
    ``rate_limit`` means the configured default applies.
    """

    __tablename__ = "api_keys"
    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_api_keys_usage_non_negative"),
    )

    id = Column(String, primary_key=True)
    key_hash = Column(String, unique=True, nullable=False, index=True)
    owner_id = Column(String, nullable=False, index=True)

    # Metadata
    name = Column(String, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_used = Column(DateTime(timezone=True))

    # Quota
    is_active = Column(Boolean, default=True, nullable=False)
    rate_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)

    def remaining(self, limit: int) -> int:
        """Units left under ``limit`` (the key's effective limit)."""
        return max(limit - (self.usage_count or 0), 0)

    def __repr__(self):
        return f"<APIKey(id='{self.id}', owner='{self.owner_id}', usage={self.usage_count})>"
