"""
Database session and engine.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from parkwatch.config import settings
from parkwatch.db.base import Base


def _engine_kwargs(url: str) -> dict:
    if make_url(url).get_backend_name() != "postgresql":
        return {}
    return {
        "pool_size": 5,
        "max_overflow": 5,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_timeout": 30,
        # Every query carries a server-side timeout so a stuck statement cannot hang a run.
        "connect_args": {"options": f"-c statement_timeout={settings.db_statement_timeout_ms}"},
    }


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
