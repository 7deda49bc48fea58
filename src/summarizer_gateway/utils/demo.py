import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.demo_usage import DemoUsage
from .logging import mask_email

logger = logging.getLogger(__name__)


class DemoUsageManager:
    """Manages the trial request counters of demo identities."""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create(self, email: str) -> DemoUsage:
        """Return the counter for ``email``, creating it at zero if absent."""
        record = self.db.query(DemoUsage).filter(DemoUsage.email == email).first()
        if record is not None:
            return record

        record = DemoUsage(email=email, demo_usage=0)
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created it first
            self.db.rollback()
            return self.db.query(DemoUsage).filter(DemoUsage.email == email).one()

        logger.info(f"Created demo usage record for {mask_email(email)}")
        return record

    def try_consume(self, email: str, limit: int) -> bool:
        """Atomically take one trial request; False once ``limit`` is reached."""
        stmt = (
            update(DemoUsage)
            .where(DemoUsage.email == email, DemoUsage.demo_usage < limit)
            .values(demo_usage=DemoUsage.demo_usage + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def release(self, email: str) -> bool:
        stmt = (
            update(DemoUsage)
            .where(DemoUsage.email == email, DemoUsage.demo_usage > 0)
            .values(demo_usage=DemoUsage.demo_usage - 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def current_usage(self, email: str) -> int:
        usage = (
            self.db.query(DemoUsage.demo_usage)
            .filter(DemoUsage.email == email)
            .scalar()
        )
        return usage or 0
