"""Sync coordinator bridging two session stores over a best-effort channel.

Flow
----
- PUSH:  every local ``SessionStore.session_added`` becomes an
  ``AddSession`` (plus a ``ContextUpdate``) if the peer is reachable right
  now.  Unreachable means dropped; the peer catches up on its next pull.
- PULL:  ``RequestFullState`` on activation and whenever the peer becomes
  reachable again (companion side only, ``auto_pull=True``).  The peer
  answers with ``FullStateResponse`` and the local store replaces its
  history and counters wholesale.

The primary device never pulls on its own.  At most one side of a pair
may auto-pull, or the two stores would replace each other.

Threading
---------
Sends and inbound messages are handled on one worker thread owned by the
coordinator, so nothing here ever runs inside a timer tick and nothing
waits for the peer.  The store does its own locking.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Callable

from loguru import logger
from PyQt6.QtCore import QObject, pyqtSignal

from ..store.models import Session
from ..store.session_store import SessionStore
from .channel import Channel, ChannelError
from .messages import (
    AddSession,
    ContextUpdate,
    FullStateResponse,
    Message,
    MessageError,
    RequestFullState,
    decode,
    encode,
)


class SyncStatus:
    """Coordinator status values."""
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    UNREACHABLE = "unreachable"
    ERROR = "error"


class SyncCoordinator(QObject):
    """Keeps the local store in step with the peer device's store.

    Signals:
        status_changed: new ``SyncStatus`` value
        sync_completed: (success, message) after a pull round trip
        peer_context_changed: latest ``ContextUpdate`` from the peer
    """

    status_changed = pyqtSignal(str)
    sync_completed = pyqtSignal(bool, str)
    peer_context_changed = pyqtSignal(object)

    def __init__(
        self,
        store: SessionStore,
        channel: Channel,
        *,
        name: str = "device",
        auto_pull: bool = True,
        now: Callable[[], datetime] | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._store = store
        self._channel = channel
        self.name = name
        self.auto_pull = auto_pull
        self._now = now or datetime.now

        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._futures: set[Future] = set()
        self._pending_requests: set[str] = set()
        self._active = False

        self._status = SyncStatus.IDLE
        self.last_sync_time: datetime | None = None
        self.peer_context: ContextUpdate | None = None

    # ══════════════════════════════════════════════════════════════════
    #  LIFECYCLE
    # ══════════════════════════════════════════════════════════════════

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def status(self) -> str:
        return self._status

    @property
    def is_reachable(self) -> bool:
        return self._channel.is_reachable()

    def activate(self) -> None:
        if self._active:
            logger.warning(f"[SYNC {self.name}] already active")
            return
        with self._lock:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"sync-{self.name}"
            )
            self._active = True
        self._store.session_added.connect(self.push_session)
        self._channel.set_reachability_listener(self._on_reachability_changed)
        self._channel.set_receiver(self._on_data)
        logger.info(f"[SYNC {self.name}] activated")

        if not self._channel.is_reachable():
            self._set_status(SyncStatus.UNREACHABLE)
        elif self.auto_pull:
            self.request_full_state()

    def deactivate(self, timeout: float = 2.0) -> None:
        """Stop scheduling new work and let queued work finish."""
        if not self._active:
            return
        self._store.session_added.disconnect(self.push_session)
        self._channel.set_receiver(None)
        self._channel.set_reachability_listener(None)
        self.wait_idle(timeout)
        with self._lock:
            self._active = False
            executor, self._executor = self._executor, None
            self._pending_requests.clear()
        if executor is not None:
            executor.shutdown(wait=False)
        self._set_status(SyncStatus.IDLE)
        logger.info(f"[SYNC {self.name}] deactivated")

    def wait_idle(self, timeout: float = 2.0) -> bool:
        """Block until the worker has drained everything queued so far."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                futures = list(self._futures)
            if not futures:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            wait(futures, timeout=remaining)

    # ══════════════════════════════════════════════════════════════════
    #  OUTBOUND
    # ══════════════════════════════════════════════════════════════════

    def push_session(self, session: Session) -> None:
        """Fire-and-forget a freshly recorded session to the peer."""
        if not self._channel.is_reachable():
            logger.debug(f"[SYNC {self.name}] peer unreachable, push dropped")
            self._set_status(SyncStatus.UNREACHABLE)
            return
        self._submit(self._send, AddSession(session))
        self._submit(self._send, self._context())

    def send_context(self) -> None:
        if self._channel.is_reachable():
            self._submit(self._send, self._context())

    def request_full_state(self) -> bool:
        """Ask the peer for its full store.  Returns ``False`` if unreachable.

        Only the reply to the latest request is applied; replies to
        earlier ones are ignored.
        """
        if not self._active:
            return False
        if not self._channel.is_reachable():
            logger.debug(f"[SYNC {self.name}] peer unreachable, pull skipped")
            self._set_status(SyncStatus.UNREACHABLE)
            return False
        request = RequestFullState()
        with self._lock:
            # a newer pull supersedes any request whose reply never came
            self._pending_requests.clear()
            self._pending_requests.add(request.request_id)
        self._set_status(SyncStatus.SYNCING)
        self._submit(self._send, request)
        return True

    def _context(self) -> ContextUpdate:
        return ContextUpdate(
            streak=self._store.streak,
            today_count=self._store.today_count(),
            sent_at=self._now(),
        )

    def _send(self, message: Message) -> None:
        try:
            self._channel.send(encode(message))
        except ChannelError as exc:
            logger.debug(f"[SYNC {self.name}] send dropped: {exc}")
            if isinstance(message, RequestFullState):
                with self._lock:
                    self._pending_requests.discard(message.request_id)
                self._set_status(SyncStatus.UNREACHABLE)
                self.sync_completed.emit(False, "peer unreachable")

    # ══════════════════════════════════════════════════════════════════
    #  INBOUND
    # ══════════════════════════════════════════════════════════════════

    def _on_data(self, data: bytes) -> None:
        self._submit(self._handle, data)

    def _on_reachability_changed(self, reachable: bool) -> None:
        logger.info(f"[SYNC {self.name}] peer reachable: {reachable}")
        if not reachable:
            self._set_status(SyncStatus.UNREACHABLE)
        elif self.auto_pull:
            self.request_full_state()
        else:
            self._set_status(SyncStatus.IDLE)

    def _handle(self, data: bytes) -> None:
        try:
            message = decode(data)
        except MessageError as exc:
            logger.warning(f"[SYNC {self.name}] dropped bad message: {exc}")
            return

        if isinstance(message, AddSession):
            self._store.merge_session(message.session)
        elif isinstance(message, RequestFullState):
            reply = FullStateResponse(message.request_id, self._store.snapshot())
            self._send(reply)
        elif isinstance(message, FullStateResponse):
            self._apply_response(message)
        elif isinstance(message, ContextUpdate):
            self.peer_context = message
            self.peer_context_changed.emit(message)

    def _apply_response(self, message: FullStateResponse) -> None:
        with self._lock:
            if message.request_id not in self._pending_requests:
                logger.debug(
                    f"[SYNC {self.name}] ignoring unsolicited full state "
                    f"{message.request_id[:8]}"
                )
                return
            self._pending_requests.discard(message.request_id)

        self._store.apply_snapshot(message.snapshot)
        self.last_sync_time = self._now()
        self._set_status(SyncStatus.SYNCED)
        count = len(message.snapshot.sessions)
        logger.info(f"[SYNC {self.name}] full state applied ({count} sessions)")
        self.sync_completed.emit(True, f"{count} sessions")

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL
    # ══════════════════════════════════════════════════════════════════

    def _submit(self, fn, *args) -> None:
        with self._lock:
            if self._executor is None:
                logger.debug(f"[SYNC {self.name}] inactive, work dropped")
                return
            future = self._executor.submit(self._guarded, fn, *args)
            self._futures.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def _guarded(self, fn, *args) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception(f"[SYNC {self.name}] sync work failed")
            self._set_status(SyncStatus.ERROR)

    def _set_status(self, status: str) -> None:
        if status == self._status:
            return
        self._status = status
        self.status_changed.emit(status)
