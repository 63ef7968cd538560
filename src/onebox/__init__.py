"""Onebox Sync - multi-account IMAP ingestion engine."""

__version__ = "0.1.0"
