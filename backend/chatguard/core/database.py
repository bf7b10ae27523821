"""
Database connection and session management.
"""
import logging
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from chatguard.core.config import DATABASE_DSN

logger = logging.getLogger(__name__)

if DATABASE_DSN.startswith("sqlite"):
    database_path = make_url(DATABASE_DSN).database
    if database_path and database_path != ":memory:":
        Path(database_path).parent.mkdir(parents=True, exist_ok=True)

    # Background tasks use their own sessions from worker threads
    engine = create_engine(
        DATABASE_DSN,
        connect_args={"check_same_thread": False},
        echo=False,
    )
else:
    engine = create_engine(
        DATABASE_DSN,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_size=10,  # Number of connections to maintain
        max_overflow=20,  # Maximum overflow connections
        pool_timeout=60,  # Timeout for getting connection from pool
        echo=False,  # Set to True for SQL debugging
        connect_args={
            "connect_timeout": 30,
            "read_timeout": 300,
            "write_timeout": 300,
        } if "pymysql" in DATABASE_DSN else {}
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for FastAPI to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        try:
            db.close()
        except Exception as e:
            # Connection may already be gone; closing must not mask the request outcome
            logger.warning(f"Error closing database session (connection may be lost): {str(e)}")


def init_db() -> None:
    """Create all tables registered on Base."""
    import chatguard.models  # noqa: F401  (registers models on Base)
    Base.metadata.create_all(bind=engine)
