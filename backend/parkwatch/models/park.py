"""Park: parent collection of attractions. qt_park_id maps the wait-time feed's park number."""
from sqlalchemy import Column, Integer, String

from parkwatch.db.base import Base


class Park(Base):
    __tablename__ = "parks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(16), nullable=False, unique=True)  # e.g. TDL, TDS
    name = Column(String(128), nullable=True)
    qt_park_id = Column(Integer, nullable=True, unique=True)
