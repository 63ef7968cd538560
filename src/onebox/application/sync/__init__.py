"""Mailbox synchronization: per-account sessions, timers and supervisor."""

from onebox.application.sync.scheduler import ReconnectPolicy, ReconnectScheduler
from onebox.application.sync.session import (
    ConnectionSession,
    QueuedEvent,
    SessionStats,
    SessionTimings,
)
from onebox.application.sync.state_machine import (
    Action,
    SessionEvent,
    SessionState,
    Transition,
    transition,
)
from onebox.application.sync.supervisor import AccountSupervisor, accounts_from_pairs

__all__ = [
    "AccountSupervisor",
    "accounts_from_pairs",
    "ConnectionSession",
    "QueuedEvent",
    "SessionStats",
    "SessionTimings",
    "ReconnectPolicy",
    "ReconnectScheduler",
    "Action",
    "SessionEvent",
    "SessionState",
    "Transition",
    "transition",
]
