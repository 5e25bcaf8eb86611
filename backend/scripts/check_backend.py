#!/usr/bin/env python3
"""
Quick checks so the backend can start. Run from backend/:
  python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        errors.append("backend/.env missing. Set DATABASE_URL and the push provider credentials there.")
    else:
        print("OK  .env exists")

    # 2) DB connection and tables
    try:
        from sqlalchemy import inspect, text
        from marketplace_push.db.session import engine
        from marketplace_push.db.tables import ALL_TABLE_NAMES
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("OK  Database connection (DATABASE_URL)")
        missing = set(ALL_TABLE_NAMES) - set(inspect(engine).get_table_names())
        if missing:
            errors.append(f"Tables missing: {', '.join(sorted(missing))}. Run: alembic upgrade head")
            print("FAIL Tables missing:", ", ".join(sorted(missing)))
        else:
            print("OK  Tables present")
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 3) App import (catches missing deps, bad imports)
    try:
        from marketplace_push.main import app  # noqa: F401
        print("OK  App import (marketplace_push.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)
        print("\nFix the above, then run:")
        print("  cd backend && uvicorn marketplace_push.main:app --reload --host 0.0.0.0 --port 8000")
        return 1

    # 4) Push providers (unconfigured is allowed; that provider is skipped)
    from marketplace_push.config import settings
    from marketplace_push.services.push.credentials import CredentialResolver
    status = CredentialResolver(settings).status()
    for provider, s in status.items():
        if s["configured"]:
            print(f"OK  {provider} configured")
        else:
            print(f"WARN {provider} not configured: {s['reason']}")
    if not any(s["configured"] for s in status.values()):
        print("WARN No push provider configured; notifications will only be saved in-app")

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        return 1

    print("\nAll checks passed. Start with: uvicorn marketplace_push.main:app --reload")
    return 0

if __name__ == "__main__":
    sys.exit(main())
