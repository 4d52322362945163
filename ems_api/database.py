"""
Database engine and session for the EMS API. SQLite by default.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ems_api.config import DATABASE_URL
from ems_api.models import Base


def _make_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url)
    # request handlers run in a threadpool; one in-memory DB must be shared by all of them
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url.startswith("sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


engine = _make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=engine)


def reset_db() -> None:
    """Drop and recreate all tables (tests)."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def get_db():
    """Dependency: yield a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
