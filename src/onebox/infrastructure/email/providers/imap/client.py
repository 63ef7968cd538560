from __future__ import annotations
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator, Optional

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientAbortError, IMAPClientError, LoginError
from loguru import logger

from onebox.application.ports.email_source import (
    FolderStatus,
    MailboxAuthError,
    MailboxConnection,
    MailboxMessageError,
    MailboxTransportError,
    RawEmail,
)
from onebox.domain.entities.account import Account
from onebox.infrastructure.email.providers.imap.auth import ImapAuthenticator, ImapServerConfig

BODY_PEEK = b"BODY.PEEK[]"
BODY_KEY = b"BODY[]"


@contextmanager
def _transport_errors(account: str, operation: str) -> Iterator[None]:
    """Translate imapclient/socket failures into MailboxTransportError."""
    try:
        yield
    except LoginError as e:
        raise MailboxAuthError(f"{account}: login rejected: {e}") from e
    except (IMAPClientError, OSError) as e:
        raise MailboxTransportError(f"{account}: {operation} failed: {e}") from e


@contextmanager
def _message_errors(account: str, uid: int) -> Iterator[None]:
    """Like _transport_errors, but a NO/BAD reply only fails this one message."""
    try:
        yield
    except (IMAPClientAbortError, OSError) as e:
        raise MailboxTransportError(f"{account}: FETCH {uid} failed: {e}") from e
    except IMAPClientError as e:
        raise MailboxMessageError(uid, f"{account}: server refused FETCH {uid}: {e}") from e


class ImapMailboxConnection(MailboxConnection):
    """Read-only IMAP connection for one account, with IDLE push support."""

    def __init__(self, account: Account, server: ImapServerConfig) -> None:
        self.account = account
        self.server = server
        self._conn: Optional[IMAPClient] = None
        self._folder: Optional[str] = None
        self._exists = 0
        self._commands_since_idle = False

    def _client(self) -> IMAPClient:
        if self._conn is None:
            raise MailboxTransportError(f"{self.account.identifier}: not connected")
        return self._conn

    def connect(self) -> None:
        logger.debug(f"Connecting to {self.server.host}:{self.server.port} as {self.account.identifier}")
        with _transport_errors(self.account.identifier, "connect"):
            self._conn = ImapAuthenticator(self.server).login(self.account)

    def select_folder(self, folder: str) -> FolderStatus:
        conn = self._client()
        with _transport_errors(self.account.identifier, f"select {folder}"):
            info = conn.select_folder(folder, readonly=True)

        self._folder = folder
        self._exists = int(info.get(b"EXISTS", 0))
        uidvalidity = info.get(b"UIDVALIDITY")
        return FolderStatus(
            folder=folder,
            exists=self._exists,
            uidvalidity=int(uidvalidity) if uidvalidity is not None else None,
        )

    def search_since(self, since: date) -> list[int]:
        conn = self._client()
        self._commands_since_idle = True
        with _transport_errors(self.account.identifier, "SEARCH SINCE"):
            return list(conn.search(["SINCE", since]))

    def search_unseen(self) -> list[int]:
        conn = self._client()
        self._commands_since_idle = True
        with _transport_errors(self.account.identifier, "SEARCH UNSEEN"):
            return list(conn.search(["UNSEEN"]))

    def fetch(self, uid: int) -> Optional[RawEmail]:
        """Fetch one message without setting \\Seen.

        Raises MailboxMessageError when the server refuses just this UID.
        """
        conn = self._client()
        self._commands_since_idle = True
        with _message_errors(self.account.identifier, uid):
            data = conn.fetch([uid], [BODY_PEEK])

        entry = data.get(uid)
        if not entry or not entry.get(BODY_KEY):
            return None

        return RawEmail(
            account=self.account.identifier,
            folder=self._folder or "",
            uid=uid,
            rfc822_bytes=entry[BODY_KEY],
        )

    def wait_for_new_mail(self, timeout: float) -> int:
        """Hold an IDLE for up to ``timeout`` seconds.

        Returns how many messages arrived according to EXISTS updates
        (0 when nothing was pushed). Updates queued while searching or
        fetching are collected with a NOOP first, and responses that land
        between the check and DONE are counted too.
        """
        conn = self._client()
        with _transport_errors(self.account.identifier, "IDLE"):
            responses = []
            if self._commands_since_idle:
                _text, pending = conn.noop()
                responses.extend(pending)
                self._commands_since_idle = False

            conn.idle()
            try:
                responses.extend(conn.idle_check(timeout=timeout))
            finally:
                _text, trailing = conn.idle_done()
            responses.extend(trailing)

        return self._count_arrivals(responses)

    def _count_arrivals(self, responses: Iterable[tuple]) -> int:
        arrived = 0
        for response in responses:
            if len(response) < 2:
                continue
            if response[1] == b"EXISTS":
                exists = int(response[0])
                # Any EXISTS is a signal; the session skips UIDs it already has
                arrived += max(exists - self._exists, 1)
                self._exists = exists
            elif response[1] == b"EXPUNGE":
                self._exists = max(self._exists - 1, 0)
        return arrived

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.logout()
        except (IMAPClientError, OSError) as e:
            # Connection already dead; drop the socket
            logger.debug(f"Logout for {self.account.identifier} failed: {e}")
            try:
                conn.shutdown()
            except OSError:
                pass


def imap_connection_factory(server: ImapServerConfig):
    """Build the per-account connection factory sessions use on every connect."""

    def _factory(account: Account) -> ImapMailboxConnection:
        return ImapMailboxConnection(account, server)

    return _factory
