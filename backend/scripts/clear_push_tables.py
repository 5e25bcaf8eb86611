#!/usr/bin/env python3
"""
Completely clear push tables (device_registrations, notifications). Fast (TRUNCATE). Dev resets only.
Run with backend stopped to avoid locks: cd backend && python scripts/clear_push_tables.py
"""
import sys
from pathlib import Path

# backend/scripts/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import text

from marketplace_push.db.session import engine
from marketplace_push.db.tables import PUSH_TABLE_NAMES


def main():
    tables = ", ".join(PUSH_TABLE_NAMES)
    print(f"Connecting to DB and truncating {tables} ...")
    with engine.connect() as conn:
        conn.execute(text(f"TRUNCATE TABLE {tables} RESTART IDENTITY CASCADE"))
        conn.commit()
    print("Done. Push tables are empty. Clients re-register their devices on next launch.")


if __name__ == "__main__":
    main()
