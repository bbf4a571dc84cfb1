"""
Engine and session setup for the booking store.

SQLite file by default; set DATABASE_URL to point at PostgreSQL in
production.
"""
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///./limo.db"


def normalize_database_url(url: str) -> str:
    """Some hosts still hand out postgres:// URLs, which SQLAlchemy 2 rejects."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Sessions are used from the request handlers and the scheduler thread
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL))

engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding a session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create any missing tables."""
    import db_models  # noqa: F401 - registers the tables on Base
    Base.metadata.create_all(bind=engine)
