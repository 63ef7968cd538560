"""One-shot backfill: ingest the lookback window of every mailbox, then exit."""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone

from loguru import logger

from onebox.application.ports.email_source import (
    MailboxConnection,
    MailboxMessageError,
    MailboxTransportError,
)
from onebox.application.sync.supervisor import accounts_from_pairs
from onebox.application.use_cases.ingest_email import IngestEmailUseCase
from onebox.cli.worker import build_pipeline, configure_logging
from onebox.infrastructure.email.providers.imap.auth import ImapServerConfig
from onebox.infrastructure.email.providers.imap.client import ImapMailboxConnection
from onebox.infrastructure.settings import credential_pairs_from_env, get_settings


def backfill_mailbox(
    connection: MailboxConnection,
    pipeline: IngestEmailUseCase,
    folder: str,
    since_days: int,
    limit: int | None = None,
) -> tuple[int, int]:
    """Search the folder since ``since_days`` ago and ingest every match.

    Returns (ingested, failed). The connection is always closed.
    """
    ingested = 0
    failed = 0
    try:
        connection.connect()
        connection.select_folder(folder)

        since = (datetime.now(timezone.utc) - timedelta(days=since_days)).date()
        uids = connection.search_since(since)
        if limit is not None:
            uids = uids[-limit:]  # Take last N
        logger.info(f"Found {len(uids)} emails since {since:%d-%b-%Y}")

        for uid in uids:
            try:
                raw = connection.fetch(uid)
            except MailboxMessageError as e:
                logger.error(f"Skipping UID {uid}: {e}")
                failed += 1
                continue
            if raw is None:
                continue
            result = pipeline.process(raw)
            if result.failed:
                failed += 1
            else:
                ingested += 1
    finally:
        connection.close()

    return ingested, failed


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill configured IMAP mailboxes once")
    parser.add_argument("--since-days", type=int, default=None, help="Lookback window (default: settings)")
    parser.add_argument("--limit", type=int, default=None, help="Max emails per mailbox")
    parser.add_argument("--account", default=None, help="Only backfill this address")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)

    accounts = accounts_from_pairs(credential_pairs_from_env())
    if args.account:
        accounts = [a for a in accounts if a.identifier == args.account]

    if not accounts:
        logger.warning("No matching IMAP accounts configured, nothing to backfill")
        return 0

    server = ImapServerConfig(
        host=settings.imap_host,
        port=settings.imap_port,
        timeout=settings.imap_timeout_seconds,
    )
    pipeline = build_pipeline(settings)
    since_days = args.since_days if args.since_days is not None else settings.backfill_lookback_days

    exit_code = 0
    for account in accounts:
        with logger.contextualize(account=account.identifier):
            try:
                ingested, failed = backfill_mailbox(
                    ImapMailboxConnection(account, server),
                    pipeline,
                    folder=settings.imap_folder,
                    since_days=since_days,
                    limit=args.limit,
                )
                logger.info(f"Backfill complete: ingested={ingested}, failed={failed}")
            except MailboxTransportError as e:
                logger.error(f"Backfill failed: {e}")
                exit_code = 1

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
