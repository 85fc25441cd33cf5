"""
Engine and per-request session
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from app.core.settings import settings
from app.logging_config import get_logger

logger = get_logger(__name__)


def build_engine(url: str):
    """PostgreSQL in production; SQLite works for local tooling."""
    parsed = make_url(url)
    logger.info(f"Database connection: {parsed.render_as_string(hide_password=True)}")
    if parsed.get_backend_name() == "sqlite":
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    One session per request.

    Endpoints commit once the whole user action has succeeded; if the
    action raises, everything it flushed is rolled back together.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
