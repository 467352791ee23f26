"""Database session factory and configuration.

Provides database connectivity and session management for the catalog
store and the analytics log.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from config import settings
from models.base import Base

DATABASE_URL = settings.DATABASE_URL

# Create engine with connection pooling
# Pool settings only apply to PostgreSQL (not SQLite)
_engine_kwargs = {
    "pool_pre_ping": True,  # Verify connections before using
    "echo": settings.DEBUG,  # SQL query logging
}

if DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    _engine_kwargs["pool_size"] = 5
    _engine_kwargs["max_overflow"] = 10
    # Catalog reads must fail fast rather than hang a search request
    _engine_kwargs["connect_args"] = {
        "connect_timeout": settings.CATALOG_QUERY_TIMEOUT_SECONDS,
        "options": f"-c statement_timeout={settings.CATALOG_QUERY_TIMEOUT_SECONDS * 1000}",
    }

engine = create_engine(DATABASE_URL, **_engine_kwargs)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI endpoints.

    Usage:
        @router.get("/health")
        def health(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_all() -> None:
    """Create all tables directly (development and tests; production uses migrations)"""
    Base.metadata.create_all(bind=engine)
