from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol


class MailboxTransportError(Exception):
    """Network or protocol failure on a mailbox connection."""


class MailboxAuthError(MailboxTransportError):
    """The server rejected the account's credentials."""


class MailboxMessageError(Exception):
    """The server refused one message; the connection itself is still usable."""

    def __init__(self, uid: int, message: str) -> None:
        super().__init__(message)
        self.uid = uid


@dataclass(frozen=True)
class RawEmail:
    account: str
    folder: str
    uid: int
    rfc822_bytes: bytes


@dataclass(frozen=True)
class FolderStatus:
    folder: str
    exists: int
    uidvalidity: Optional[int] = None


class MailboxConnection(Protocol):
    """One authenticated, read-only connection to a single mailbox folder."""

    def connect(self) -> None: ...
    def select_folder(self, folder: str) -> FolderStatus: ...
    def search_since(self, since: date) -> list[int]: ...
    def search_unseen(self) -> list[int]: ...
    def fetch(self, uid: int) -> Optional[RawEmail]: ...
    def wait_for_new_mail(self, timeout: float) -> int: ...
    def close(self) -> None: ...
