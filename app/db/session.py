import logging
import os

from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.core.errors import AppError

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {"connect_timeout": 30}


def _ensure_sqlite_dir(url: str) -> None:
    prefix = "sqlite:///"
    if not url.startswith(prefix) or url.endswith(":memory:"):
        return
    db_dir = os.path.dirname(url[len(prefix):])
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)


_ensure_sqlite_dir(settings.DATABASE_URL)

# Create the SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    pool_pre_ping=True,
    pool_recycle=3600,
)

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# do not change the order of the code below
# Dependency that can be used in routes to get the session
def get_db() -> Session:
    db = SessionLocal()  # generate a new SessionLocal
    try:
        yield db
    except (HTTPException, AppError):
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception("unhandled database session error")
        raise HTTPException(status_code=500, detail="Query data error")
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create all tables registered on the declarative base."""
    from app.db.base import Base
    import app.models.auth  # noqa: F401
    import app.models.campaign  # noqa: F401
    import app.models.claim  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
