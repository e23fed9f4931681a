import os
import logging
from typing import Optional
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.exc import OperationalError, DisconnectionError, TimeoutError as SQLTimeoutError
from dotenv import load_dotenv
from pathlib import Path

# Load .env file from project root
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL")

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Bound by init_engine(); left unbound so importing models never needs a database
SessionLocal = sessionmaker(autocommit=False, autoflush=False)
engine: Optional[Engine] = None


def _with_connect_timeout(url: str) -> str:
    # Add connect_timeout to PostgreSQL URLs if not already present
    if (url.startswith("postgresql://") or url.startswith("postgres://")) and "connect_timeout" not in url:
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}connect_timeout=3"
    return url


def init_engine(url: Optional[str] = None, **kwargs) -> Engine:
    """
    Create the engine and bind SessionLocal to it.

    Raises:
        ValueError: If no URL is given and DATABASE_URL is not set
    """
    global engine
    url = url or DATABASE_URL
    if not url:
        raise ValueError("DATABASE_URL environment variable is not set")

    url = _with_connect_timeout(url)
    if url.startswith("sqlite"):
        engine = create_engine(url, **kwargs)
    else:
        engine = create_engine(
            url,
            pool_pre_ping=False,  # Avoid blocking on import
            pool_size=5,
            max_overflow=10,
            pool_recycle=3600,
            pool_timeout=3,
            **kwargs,
        )
    SessionLocal.configure(bind=engine)
    return engine


def get_db():
    """
    Dependency function to get database session.
    Use this in FastAPI route dependencies.
    """
    if engine is None:
        init_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_database_connection() -> bool:
    """Return True if a trivial query succeeds."""
    try:
        if engine is None:
            init_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except (OperationalError, DisconnectionError, SQLTimeoutError, ValueError) as e:
        logger.error(f"Database connection check failed: {str(e)}")
        return False
