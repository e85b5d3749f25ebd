from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from shuttle.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sessions are handed across FastAPI worker threads
        return {"check_same_thread": False, "timeout": 30}
    return {}


engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url),
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding a request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables known to the declarative base"""
    # Models register themselves on import
    from shuttle import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
