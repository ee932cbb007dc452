"""
Database configuration and session management.
"""
import os
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from betfeed.core.config import settings

DATABASE_URL = settings.DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_timeout": 2,
        "pool_recycle": 1800,
        "pool_pre_ping": True,  # Verify connections before using
    }


# Create engine with connection pooling
engine = create_engine(
    DATABASE_URL,
    echo=os.getenv("SQL_ECHO", "false").lower() == "true",
    **_engine_kwargs(DATABASE_URL)
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
    ```python
    @router.get("/endpoint")
    def endpoint(db: Session = Depends(get_db)):
        ...
    ```
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Dependency returning the session factory used for background work."""
    return SessionLocal


def check_connection(session_factory: sessionmaker = SessionLocal) -> bool:
    """Run ``SELECT 1``; False on any database error."""
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def init_db(bind=None):
    """Create tables that do not exist yet."""
    from betfeed.models.models import Base
    Base.metadata.create_all(bind=bind or engine, checkfirst=True)
