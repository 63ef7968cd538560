"""One long-lived mailbox session: connect, backfill, IDLE, refresh, recover."""

from __future__ import annotations

import queue
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from loguru import logger

from onebox.application.ports.email_source import (
    MailboxAuthError,
    MailboxConnection,
    MailboxMessageError,
    MailboxTransportError,
)
from onebox.application.sync.scheduler import ReconnectPolicy, ReconnectScheduler
from onebox.application.sync.state_machine import (
    Action,
    SessionEvent,
    SessionState,
    transition,
)
from onebox.application.use_cases.ingest_email import IngestEmailUseCase
from onebox.domain.entities.account import Account

ConnectionFactory = Callable[[Account], MailboxConnection]


@dataclass(frozen=True)
class SessionTimings:
    folder: str = "INBOX"
    lookback_days: int = 30
    refresh_interval: float = 29 * 60  # server drops IDLE at ~30 min
    idle_check: float = 10.0


@dataclass(frozen=True)
class QueuedEvent:
    event: SessionEvent
    timer_id: Optional[int] = None
    count: int = 0
    error: Optional[str] = None


@dataclass
class SessionStats:
    processed: int = 0
    failed: int = 0
    connects: int = 0
    refreshes: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_message_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransitionRecord:
    source: SessionState
    event: SessionEvent
    target: SessionState
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ConnectionSession:
    """Drives one account through the session state machine.

    All transitions and pipeline runs happen on the session's own thread
    (or on the caller's thread when ``dispatch`` is used directly). Timers
    and ``shutdown`` only enqueue events, so transitions are never concurrent.
    """

    def __init__(
        self,
        account: Account,
        connection_factory: ConnectionFactory,
        pipeline: IngestEmailUseCase,
        timings: SessionTimings = SessionTimings(),
        policy: ReconnectPolicy = ReconnectPolicy(),
        scheduler: Optional[ReconnectScheduler] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.account = account
        self.connection_factory = connection_factory
        self.pipeline = pipeline
        self.timings = timings
        self.policy = policy
        self.scheduler = scheduler or ReconnectScheduler(name=account.identifier)
        self.clock = clock

        self.stats = SessionStats()
        self.history: deque[TransitionRecord] = deque(maxlen=200)
        self.backoff_attempt = 0

        self._state = SessionState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._events: "queue.Queue[QueuedEvent]" = queue.Queue()
        self._stopping = threading.Event()
        self._connection: Optional[MailboxConnection] = None
        self._thread: Optional[threading.Thread] = None

        # UIDs already pushed through the pipeline under the current UIDVALIDITY
        self._ingested: set[int] = set()
        self._uidvalidity: Optional[int] = None

        self._log = logger.bind(account=account.identifier)

    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def account_id(self) -> str:
        return self.account.identifier

    @property
    def connection(self) -> Optional[MailboxConnection]:
        return self._connection

    def post(self, event: SessionEvent, **details) -> None:
        self._events.put(QueuedEvent(event, **details))

    def start(self) -> None:
        """Spawn the session thread and kick off the first connect."""
        if self._thread is not None:
            raise RuntimeError(f"Session {self.account_id} already started")
        self.post(SessionEvent.START)
        self._thread = threading.Thread(target=self.run, name=f"session-{self.account_id}", daemon=True)
        self._thread.start()

    def shutdown(self) -> None:
        self._stopping.set()
        self.post(SessionEvent.SHUTDOWN)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the session thread; True when it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def run(self) -> None:
        with logger.contextualize(account=self.account_id):
            while self.state is not SessionState.TERMINATED:
                event = self._next_event()
                if event is not None:
                    self.dispatch(event)
        self._log.info(f"Session stopped ({self.stats.processed} processed, {self.stats.failed} failed)")

    # ------------------------------------------------------------------
    def _next_event(self) -> Optional[QueuedEvent]:
        if self.state is SessionState.IDLE and self._events.empty() and not self._stopping.is_set():
            return self._wait_in_idle()
        try:
            return self._events.get(timeout=self.timings.idle_check)
        except queue.Empty:
            return None

    def _wait_in_idle(self) -> Optional[QueuedEvent]:
        try:
            arrived = self._connection.wait_for_new_mail(self.timings.idle_check)
        except MailboxTransportError as e:
            return QueuedEvent(SessionEvent.TRANSPORT_ERROR, error=str(e))
        except Exception as e:
            self._log.exception(f"Unexpected failure while idling: {e}")
            return QueuedEvent(SessionEvent.TRANSPORT_ERROR, error=str(e))
        if arrived:
            return QueuedEvent(SessionEvent.NEW_MAIL_SIGNAL, count=arrived)
        return None

    def dispatch(self, event: QueuedEvent) -> None:
        """Apply one event, then any follow-up events its actions produce."""
        pending = deque([event])
        while pending:
            current_event = pending.popleft()

            if current_event.event is SessionEvent.TIMER_FIRED and not self.scheduler.claim(current_event.timer_id):
                self._log.debug(f"Ignoring stale timer #{current_event.timer_id}")
                continue

            with self._state_lock:
                source = self._state
                step = transition(source, current_event.event)
                if step is None:
                    self._log.debug(f"Event {current_event.event.value} ignored in state {source.value}")
                    continue
                self._state = step.target

            self.history.append(TransitionRecord(source, current_event.event, step.target))
            self._log_transition(source, current_event, step.target)

            for action in step.actions:
                follow_up = self._run_action(action, current_event)
                if follow_up is not None:
                    pending.append(follow_up)
                    if follow_up.event in (SessionEvent.TRANSPORT_ERROR, SessionEvent.AUTH_FAILED):
                        break

    def _run_action(self, action: Action, event: QueuedEvent) -> Optional[QueuedEvent]:
        try:
            return self._perform(action, event)
        except MailboxAuthError as e:
            return QueuedEvent(SessionEvent.AUTH_FAILED, error=str(e))
        except MailboxTransportError as e:
            return QueuedEvent(SessionEvent.TRANSPORT_ERROR, error=str(e))
        except Exception as e:
            self._log.exception(f"Unexpected failure during {action.value}: {e}")
            return QueuedEvent(SessionEvent.TRANSPORT_ERROR, error=str(e))

    def _log_transition(self, source: SessionState, event: QueuedEvent, target: SessionState) -> None:
        if event.event in (SessionEvent.TRANSPORT_ERROR, SessionEvent.AUTH_FAILED):
            self.stats.errors += 1
            self.stats.last_error = event.error
            self._log.warning(f"Connection error in {source.value}: {event.error}")
        elif target is SessionState.REFRESHING:
            self._log.info("Reconnecting to refresh IDLE connection")
        elif event.event is SessionEvent.SHUTDOWN:
            self._log.info(f"Shutting down from {source.value}")
        else:
            self._log.debug(f"{source.value} --{event.event.value}--> {target.value}")

    # ------------------------------------------------------------------
    def _perform(self, action: Action, event: QueuedEvent) -> Optional[QueuedEvent]:
        if action is Action.OPEN_TRANSPORT:
            return self._open_transport()
        if action is Action.SELECT_FOLDER:
            return self._select_folder()
        if action is Action.RUN_BACKFILL:
            return self._run_backfill()
        if action is Action.SUBSCRIBE_NEW_MAIL:
            self.backoff_attempt = 0
            self._log.info(f"Listening for new emails via IDLE on {self.timings.folder}")
            return None
        if action is Action.START_REFRESH_TIMER:
            self.scheduler.schedule_refresh(self.timings.refresh_interval, self._on_timer)
            return None
        if action is Action.FETCH_UNSEEN:
            return self._fetch_unseen(event.count)
        if action is Action.CLOSE_CONNECTION:
            self._close_connection()
            return None
        if action is Action.ACK_CLOSE:
            return QueuedEvent(SessionEvent.CLOSE_COMPLETE)
        if action is Action.SCHEDULE_RECONNECT:
            self.stats.refreshes += 1
            self.scheduler.schedule_retry(self.policy.refresh_delay, self._on_timer)
            return None
        if action is Action.SCHEDULE_RETRY:
            self.backoff_attempt += 1
            delay = self.policy.delay_after_error(self.backoff_attempt)
            self._log.info(f"Attempting to reconnect in {delay:.1f}s (attempt {self.backoff_attempt})")
            self.scheduler.schedule_retry(delay, self._on_timer)
            return None
        if action is Action.CANCEL_TIMERS:
            self.scheduler.cancel_all()
            return None
        raise ValueError(f"Unknown action {action}")

    def _on_timer(self, timer_id: int) -> None:
        self.post(SessionEvent.TIMER_FIRED, timer_id=timer_id)

    def _open_transport(self) -> QueuedEvent:
        # A fresh handle per attempt; the previous one is never reused
        self._connection = self.connection_factory(self.account)
        self._connection.connect()
        self.stats.connects += 1
        self._log.info("Connected to IMAP server")
        return QueuedEvent(SessionEvent.CONNECTED)

    def _select_folder(self) -> QueuedEvent:
        status = self._connection.select_folder(self.timings.folder)
        if status.uidvalidity != self._uidvalidity:
            if self._ingested:
                self._log.info(f"UIDVALIDITY changed for {status.folder}; forgetting {len(self._ingested)} ingested UIDs")
            self._ingested.clear()
            self._uidvalidity = status.uidvalidity
        self._log.info(f"Inbox opened: {status.exists} total messages in {status.folder}")
        return QueuedEvent(SessionEvent.FOLDER_SELECTED)

    def _run_backfill(self) -> QueuedEvent:
        since = (self.clock() - timedelta(days=self.timings.lookback_days)).date()
        self._log.info(f"Fetching emails since {since:%d-%b-%Y} (last {self.timings.lookback_days} days)")

        uids = self._connection.search_since(since)
        if not uids:
            self._log.info(f"No emails found in the last {self.timings.lookback_days} days")
        else:
            self._log.info(f"Found {len(uids)} emails from the last {self.timings.lookback_days} days")
            self._process_uids(uids)
            self._log.info("Initial email sync completed")
        return QueuedEvent(SessionEvent.SEARCH_COMPLETE)

    def _fetch_unseen(self, signalled: int) -> None:
        self._log.info(f"{signalled} new email(s) signalled")
        uids = self._connection.search_unseen()
        if not uids:
            self._log.info("No unseen messages found")
            return None
        self._log.info(f"Fetching {len(uids)} unseen email(s)")
        self._process_uids(uids)
        return None

    def _process_uids(self, uids: Iterable[int]) -> None:
        """Run the pipeline over ``uids`` one at a time, in the order given."""
        for uid in uids:
            if self._stopping.is_set():
                self._log.info("Shutdown requested; leaving the remaining messages for the next run")
                return
            if uid in self._ingested:
                self._log.debug(f"UID {uid} already ingested, skipping")
                continue

            try:
                raw = self._connection.fetch(uid)
            except MailboxMessageError as e:
                self._log.error(f"Skipping UID {uid}: {e}")
                self._ingested.add(uid)
                self.stats.failed += 1
                continue
            if raw is None:
                self._log.warning(f"UID {uid} returned no body, skipping")
                continue

            result = self.pipeline.process(raw)
            self._ingested.add(uid)
            self.stats.last_message_at = self.clock()
            if result.failed:
                self.stats.failed += 1
            else:
                self.stats.processed += 1

    def _close_connection(self) -> None:
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        connection.close()
