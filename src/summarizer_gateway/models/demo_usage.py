"""Demo quota model."""

from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.sql import func
from ..database import Base


class DemoUsage(Base):
    """Trial request counter for a signed-in user without an API key."""

    __tablename__ = "demo_usage"

    email = Column(String, primary_key=True)
    demo_usage = Column(Integer, default=0, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self):
        return f"<DemoUsage(email='{self.email}', demo_usage={self.demo_usage})>"
