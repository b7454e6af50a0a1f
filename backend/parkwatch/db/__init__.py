from parkwatch.db.base import Base
from parkwatch.db.session import get_db, engine, SessionLocal
from parkwatch.db.tables import ALL_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES"]
