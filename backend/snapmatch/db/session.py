"""Database engine and request-scoped sessions"""
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from snapmatch.core.config import settings
from snapmatch.models.base import Base


def _engine_options(database_url: str) -> dict:
    if make_url(database_url).get_backend_name() == "sqlite":
        # Sessions are used from threadpool workers, not the creating thread
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_recycle": 3600}


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Services commit explicitly; nothing is flushed behind their back
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create missing tables; Alembic migrations own schema changes"""
    import snapmatch.models  # noqa: F401  register every model with Base.metadata
    Base.metadata.create_all(bind=engine)
