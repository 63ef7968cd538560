"""SQLite infrastructure for the email document store."""

from onebox.infrastructure.sqlite.client import (
    SQLiteEmailStore,
    StoredEmail,
    sqlite_store_from_settings,
)

__all__ = [
    "SQLiteEmailStore",
    "StoredEmail",
    "sqlite_store_from_settings",
]
