"""SQLite document store for ingested emails."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from loguru import logger

from onebox.application.ports.document_store import DocumentStore
from onebox.domain.entities.email_message import NormalizedEmail
from onebox.domain.models import EmailLabel


@dataclass
class StoredEmail:
    """A persisted email document."""

    id: str
    account_id: str
    folder: str
    message_id: str
    subject: str
    sender: str
    body: str
    date: str
    indexed_at: str
    ai_category: str | None = None


class SQLiteEmailStore(DocumentStore):
    """DocumentStore on SQLite.

    Opens a connection per call, so sessions on different threads can use
    one instance concurrently.
    """

    def __init__(self, db_path: str | Path = "data/emails.db"):
        self.db_path = Path(db_path)
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connection() as conn:
            conn.executescript("""
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS emails (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL,
                    folder TEXT NOT NULL,
                    message_id TEXT NOT NULL DEFAULT '',
                    subject TEXT NOT NULL,
                    sender TEXT NOT NULL,
                    body TEXT NOT NULL,
                    date TEXT NOT NULL,
                    indexed_at TEXT NOT NULL,
                    ai_category TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_emails_account_date
                    ON emails(account_id, date);

                CREATE INDEX IF NOT EXISTS idx_emails_category
                    ON emails(ai_category);
            """)
            logger.info(f"SQLite email store initialized at {self.db_path}")

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def persist(self, email: NormalizedEmail) -> str:
        """Store an email and return its new document id."""
        doc_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        with self._connection() as conn:
            conn.execute(
                """INSERT INTO emails
                   (id, account_id, folder, message_id, subject, sender, body, date, indexed_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    doc_id,
                    email.source_account,
                    email.source_folder,
                    email.message_id,
                    email.subject,
                    email.sender,
                    email.body_text,
                    email.received_at.isoformat(),
                    now,
                ),
            )

        logger.debug(f"Indexed email {doc_id}: {email.subject[:50]}")
        return doc_id

    def update_label(self, document_id: str, label: EmailLabel) -> bool:
        """Set the AI category on a stored email. False if the id is unknown."""
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE emails SET ai_category = ? WHERE id = ?",
                (label.value, document_id),
            )
            updated = cursor.rowcount > 0

        if not updated:
            logger.warning(f"No email document {document_id} to label")
        return updated

    def get(self, document_id: str) -> StoredEmail | None:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM emails WHERE id = ?", (document_id,)).fetchone()

        if row is None:
            return None
        return StoredEmail(**dict(row))

    def count(self, account_id: str | None = None) -> int:
        with self._connection() as conn:
            if account_id is None:
                row = conn.execute("SELECT COUNT(*) FROM emails").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM emails WHERE account_id = ?", (account_id,)
                ).fetchone()
        return int(row[0])


def sqlite_store_from_settings(settings=None) -> SQLiteEmailStore:
    """Build the store at the configured path."""
    if settings is None:
        from onebox.infrastructure.settings import get_settings
        settings = get_settings()
    return SQLiteEmailStore(db_path=settings.sqlite_db_path)
