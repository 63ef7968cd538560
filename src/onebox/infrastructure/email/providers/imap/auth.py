from __future__ import annotations
from dataclasses import dataclass

from imapclient import IMAPClient

from onebox.domain.entities.account import Account

DEFAULT_IMAP_HOST = "imap.gmail.com"
DEFAULT_IMAP_PORT = 993


@dataclass(frozen=True)
class ImapServerConfig:
    """
    Where and how to reach the IMAP server shared by all accounts.
    """
    host: str = DEFAULT_IMAP_HOST
    port: int = DEFAULT_IMAP_PORT
    timeout: float = 30.0


class ImapAuthenticator:
    """
    Responsible ONLY for establishing an authenticated IMAP connection.
    No folder logic, no fetching, no parsing.
    """

    def __init__(self, server: ImapServerConfig) -> None:
        self.server = server

    def login(self, account: Account) -> IMAPClient:
        """
        Returns an authenticated IMAPClient over implicit TLS.
        The caller owns the connection and must log it out.
        """
        conn = IMAPClient(
            host=self.server.host,
            port=self.server.port,
            ssl=True,
            timeout=self.server.timeout,
        )
        try:
            conn.login(account.identifier, account.credentials.get_secret_value())
        except Exception:
            conn.shutdown()
            raise
        return conn
