"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE in scripts).
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "device_registrations",
    "notifications",
)

# Tables owned by the dispatch subsystem that may be cleared in dev resets.
# Credential configuration is environment-sourced and never persisted.
PUSH_TABLE_NAMES = (
    "device_registrations",
    "notifications",
)
