from marketplace_push.db.base import Base
from marketplace_push.db.session import engine, SessionLocal
from marketplace_push.db.tables import ALL_TABLE_NAMES, PUSH_TABLE_NAMES

__all__ = ["engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "PUSH_TABLE_NAMES"]
