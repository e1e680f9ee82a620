from nexus.db.base import Base
from nexus.db.session import get_db, engine, SessionLocal
from nexus.db.tables import ALL_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES"]
