"""
Database connection and session management.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import OperationalError, DBAPIError
from typing import Generator, Optional
import logging
import time

logger = logging.getLogger(__name__)

engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None


def make_engine(database_url: str) -> Engine:
    """Create an engine with settings appropriate for the backend."""
    if database_url.startswith("sqlite"):
        # Sessions are used from worker threads (asyncio.to_thread)
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
        connect_args={
            'connect_timeout': 10,
            'options': '-c statement_timeout=15000'
        }
    )


def init_db(database_url: str, max_retries: int = 3, retry_delay: float = 1.0) -> sessionmaker:
    """
    Initialize the engine and session factory with retry logic.
    Call this once at application startup.

    Returns:
        The session factory

    Raises:
        RuntimeError: If connection fails after all retries
    """
    global engine, SessionLocal

    for attempt in range(max_retries):
        try:
            candidate = make_engine(database_url)
            with candidate.connect() as conn:
                conn.execute(text("SELECT 1"))

            engine = candidate
            SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
            logger.info(f"Database initialized: {database_url.split('@')[1] if '@' in database_url else database_url}")
            return SessionLocal

        except (OperationalError, DBAPIError) as e:
            logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}")
            if attempt < max_retries - 1:
                time.sleep(retry_delay * (attempt + 1))
            else:
                logger.error(f"Database initialization failed after {max_retries} attempts")
                raise RuntimeError(f"Failed to connect to database: {e}") from e


def get_db() -> Generator[Session, None, None]:
    """
    Yield a database session (FastAPI dependency).

    Usage:
        @router.get("/api/trusted")
        async def list_trusted(db: Session = Depends(get_db)):
            ...
    """
    if not SessionLocal:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    db = SessionLocal()
    try:
        yield db
    except (OperationalError, DBAPIError) as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def create_tables():
    """
    Create all tables in the database.
    Prefer Alembic migrations for production.
    """
    if not engine:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    from .models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
