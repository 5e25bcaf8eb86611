"""
Database session and engine.
"""
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from marketplace_push.config import settings
from marketplace_push.db.base import Base


def _engine_kwargs(url: str) -> dict[str, Any]:
    # SQLite (local scripts) does not take pool sizing arguments
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 8,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_timeout": 30,
    }


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
# expire_on_commit=False: registry/store return rows after their short-lived session closes
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
