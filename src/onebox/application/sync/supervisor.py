"""Owns the configured accounts and one ConnectionSession per account."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from loguru import logger

from onebox.application.sync.scheduler import ReconnectPolicy
from onebox.application.sync.session import (
    ConnectionFactory,
    ConnectionSession,
    SessionStats,
    SessionTimings,
)
from onebox.application.sync.state_machine import SessionState
from onebox.application.use_cases.ingest_email import IngestEmailUseCase
from onebox.domain.entities.account import Account, CredentialPair

SessionFactory = Callable[[Account], ConnectionSession]


@dataclass(frozen=True)
class SessionStatus:
    account: str
    state: SessionState
    stats: SessionStats


def accounts_from_pairs(pairs: Iterable[CredentialPair]) -> list[Account]:
    """Keep complete pairs in order; incomplete ones are logged and skipped."""
    accounts: list[Account] = []
    seen: set[str] = set()
    for position, pair in enumerate(pairs, start=1):
        if not pair.is_complete:
            label = pair.identifier or f"account #{position}"
            logger.warning(f"Account {label} missing email or password, skipping")
            continue
        account = Account.from_pair(pair)
        if account.identifier in seen:
            logger.warning(f"Account {account.identifier} configured twice, keeping the first entry")
            continue
        seen.add(account.identifier)
        accounts.append(account)
    return accounts


class AccountSupervisor:
    """
    Multi-account sync supervisor.

    Builds the immutable account table at construction and, on ``start``,
    spawns one independent session per account. It is the only component
    that knows about all accounts.
    """

    def __init__(
        self,
        credentials: Iterable[CredentialPair],
        connection_factory: ConnectionFactory,
        pipeline: IngestEmailUseCase,
        timings: SessionTimings = SessionTimings(),
        policy: ReconnectPolicy = ReconnectPolicy(),
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.accounts: tuple[Account, ...] = tuple(accounts_from_pairs(credentials))
        self.connection_factory = connection_factory
        self.pipeline = pipeline
        self.timings = timings
        self.policy = policy
        self._session_factory = session_factory or self._default_session
        self._sessions: dict[str, ConnectionSession] = {}
        self.running = False

    def _default_session(self, account: Account) -> ConnectionSession:
        return ConnectionSession(
            account=account,
            connection_factory=self.connection_factory,
            pipeline=self.pipeline,
            timings=self.timings,
            policy=self.policy,
        )

    @property
    def account_ids(self) -> list[str]:
        return [a.identifier for a in self.accounts]

    @property
    def sessions(self) -> dict[str, ConnectionSession]:
        return dict(self._sessions)

    @property
    def is_idle(self) -> bool:
        """True when there is nothing to sync (no valid accounts)."""
        return not self.accounts

    def start(self) -> int:
        """Start one session per account. Returns how many were started."""
        if self.running:
            raise RuntimeError("Supervisor already started")

        if not self.accounts:
            logger.warning("No IMAP accounts configured; ingestion stays idle")
            return 0

        logger.info(f"Starting IMAP sync for {len(self.accounts)} account(s)")
        for account in self.accounts:
            session = self._session_factory(account)
            self._sessions[account.identifier] = session
            session.start()
            logger.info(f"  - {account.identifier}")

        self.running = True
        return len(self._sessions)

    def shutdown(self, timeout: float = 30.0) -> None:
        """Stop every session: cancel timers, close connections, join threads."""
        if not self._sessions:
            self.running = False
            return

        logger.info("Shutting down IMAP connections")
        for session in self._sessions.values():
            session.shutdown()

        for account_id, session in self._sessions.items():
            if not session.join(timeout):
                logger.warning(f"Session {account_id} did not stop within {timeout:.0f}s")

        self.running = False
        self.log_status()

    def status(self) -> list[SessionStatus]:
        return [
            SessionStatus(account=account_id, state=session.state, stats=session.stats)
            for account_id, session in self._sessions.items()
        ]

    def log_status(self) -> None:
        for entry in self.status():
            logger.info(
                f"Session {entry.account}: state={entry.state.value}, "
                f"processed={entry.stats.processed}, failed={entry.stats.failed}, "
                f"connects={entry.stats.connects}, refreshes={entry.stats.refreshes}, "
                f"errors={entry.stats.errors}"
            )
