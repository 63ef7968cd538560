"""Connection session state machine as a pure (state, event) -> transition table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    BACKFILLING = "backfilling"
    IDLE = "idle"
    REFRESHING = "refreshing"
    ERROR_BACKOFF = "error_backoff"
    TERMINATED = "terminated"


class SessionEvent(str, Enum):
    START = "start"
    CONNECTED = "connected"
    AUTH_FAILED = "auth_failed"
    FOLDER_SELECTED = "folder_selected"
    SEARCH_COMPLETE = "search_complete"
    NEW_MAIL_SIGNAL = "new_mail_signal"
    TIMER_FIRED = "timer_fired"
    CLOSE_COMPLETE = "close_complete"
    TRANSPORT_ERROR = "transport_error"
    SHUTDOWN = "shutdown"


class Action(str, Enum):
    OPEN_TRANSPORT = "open_transport"
    SELECT_FOLDER = "select_folder"
    RUN_BACKFILL = "run_backfill"
    SUBSCRIBE_NEW_MAIL = "subscribe_new_mail"
    START_REFRESH_TIMER = "start_refresh_timer"
    FETCH_UNSEEN = "fetch_unseen"
    CLOSE_CONNECTION = "close_connection"
    ACK_CLOSE = "ack_close"
    SCHEDULE_RECONNECT = "schedule_reconnect"
    SCHEDULE_RETRY = "schedule_retry"
    CANCEL_TIMERS = "cancel_timers"


@dataclass(frozen=True)
class Transition:
    target: SessionState
    actions: tuple[Action, ...] = ()


S = SessionState
E = SessionEvent
A = Action

_TABLE: dict[tuple[SessionState, SessionEvent], Transition] = {
    (S.DISCONNECTED, E.START): Transition(S.CONNECTING, (A.OPEN_TRANSPORT,)),
    (S.DISCONNECTED, E.TIMER_FIRED): Transition(S.CONNECTING, (A.OPEN_TRANSPORT,)),
    (S.CONNECTING, E.CONNECTED): Transition(S.READY, (A.SELECT_FOLDER,)),
    (S.CONNECTING, E.AUTH_FAILED): Transition(S.ERROR_BACKOFF, (A.CLOSE_CONNECTION, A.SCHEDULE_RETRY)),
    (S.READY, E.FOLDER_SELECTED): Transition(S.BACKFILLING, (A.RUN_BACKFILL,)),
    (S.BACKFILLING, E.SEARCH_COMPLETE): Transition(S.IDLE, (A.SUBSCRIBE_NEW_MAIL, A.START_REFRESH_TIMER)),
    (S.IDLE, E.NEW_MAIL_SIGNAL): Transition(S.IDLE, (A.FETCH_UNSEEN,)),
    (S.IDLE, E.TIMER_FIRED): Transition(S.REFRESHING, (A.CLOSE_CONNECTION, A.ACK_CLOSE)),
    (S.REFRESHING, E.CLOSE_COMPLETE): Transition(S.DISCONNECTED, (A.SCHEDULE_RECONNECT,)),
    (S.ERROR_BACKOFF, E.TIMER_FIRED): Transition(S.CONNECTING, (A.OPEN_TRANSPORT,)),
}

_ON_TRANSPORT_ERROR = Transition(S.ERROR_BACKOFF, (A.CANCEL_TIMERS, A.CLOSE_CONNECTION, A.SCHEDULE_RETRY))
_ON_SHUTDOWN = Transition(S.TERMINATED, (A.CANCEL_TIMERS, A.CLOSE_CONNECTION))


def transition(state: SessionState, event: SessionEvent) -> Optional[Transition]:
    """Return the transition for ``event`` in ``state``, or None if it is ignored there.

    TRANSPORT_ERROR and SHUTDOWN apply from every state except TERMINATED,
    which absorbs all events.
    """
    if state is S.TERMINATED:
        return None
    if event is E.SHUTDOWN:
        return _ON_SHUTDOWN
    if event is E.TRANSPORT_ERROR:
        return _ON_TRANSPORT_ERROR
    return _TABLE.get((state, event))
