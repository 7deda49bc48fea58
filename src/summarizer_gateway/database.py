from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator, Optional
import redis
import logging

from .config import settings

logger = logging.getLogger(__name__)

# SQLite is shared across the threadpool; writers wait on the lock instead of
# failing fast
SQLITE_CONNECT_ARGS = {"check_same_thread": False, "timeout": 30}

engine = create_engine(
    settings.database_url,
    connect_args=SQLITE_CONNECT_ARGS if settings.uses_sqlite else {},
    pool_pre_ping=not settings.uses_sqlite,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Key lookup cache, connected on first use. None when Redis is unreachable.
_redis_client: Optional[redis.Redis] = None
_redis_checked = False


def get_db() -> Generator[Session, None, None]:
    """Per-request database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_redis() -> Optional[redis.Redis]:
    """Redis client for the key cache, or None if it is not available.

    The connection is attempted once per process.
    """
    global _redis_client, _redis_checked

    if _redis_checked:
        return _redis_client

    _redis_checked = True
    try:
        client = redis.from_url(settings.redis_url, decode_responses=True)
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis not available, key cache disabled: {e}")
        return None

    _redis_client = client
    logger.info("✅ Redis key cache connected")
    return _redis_client


def create_tables():
    """Create all database tables."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables ready")
