from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from ..database import Base


class UsageLog(Base):
    """One row per completed summarization request."""

    __tablename__ = "usage_logs"

    id = Column(String, primary_key=True)

    # Who consumed the quota: "api_key" / "demo" and the key id or email
    subject_kind = Column(String, nullable=False)
    subject_ref = Column(String, nullable=False, index=True)

    # What was summarized
    repository = Column(String, nullable=False)
    used_fallback = Column(Boolean, default=False, nullable=False)

    # Timestamps
    timestamp = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<UsageLog(id='{self.id}', repository='{self.repository}')>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "subject_kind": self.subject_kind,
            "subject_ref": self.subject_ref,
            "repository": self.repository,
            "used_fallback": self.used_fallback,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
