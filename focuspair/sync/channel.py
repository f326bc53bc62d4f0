"""Transports between the two devices.

A :class:`Channel` is best-effort: no delivery guarantee, no ordering
across separate sends, no acknowledgements.  The one synchronous question
it must answer is whether the peer is reachable right now.
"""

from __future__ import annotations

import threading
from typing import Callable

from loguru import logger


Receiver = Callable[[bytes], None]
ReachabilityListener = Callable[[bool], None]


class ChannelError(Exception):
    """A send could not be handed to the transport."""


class Channel:
    """Interface every device transport implements."""

    def is_reachable(self) -> bool:
        raise NotImplementedError

    def send(self, data: bytes) -> None:
        """Hand *data* to the transport or raise :class:`ChannelError`."""
        raise NotImplementedError

    def set_receiver(self, receiver: Receiver | None) -> None:
        raise NotImplementedError

    def set_reachability_listener(self, listener: ReachabilityListener | None) -> None:
        raise NotImplementedError


class _Link:
    """Shared state of a loopback pair."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.reachable = True
        self.endpoints: list["LoopbackChannel"] = []


class LoopbackChannel(Channel):
    """In-process channel; one end of a pair made by :meth:`pair`.

    Delivery calls the peer's receiver synchronously on the sending
    thread.  Receivers are expected to hand work off immediately.
    """

    def __init__(self, link: _Link, name: str) -> None:
        self._link = link
        self.name = name
        self._receiver: Receiver | None = None
        self._listener: ReachabilityListener | None = None
        self.sent_count = 0
        self.dropped_count = 0

    @classmethod
    def pair(
        cls, first: str = "phone", second: str = "watch"
    ) -> tuple["LoopbackChannel", "LoopbackChannel"]:
        link = _Link()
        a, b = cls(link, first), cls(link, second)
        link.endpoints = [a, b]
        return a, b

    @property
    def peer(self) -> "LoopbackChannel":
        a, b = self._link.endpoints
        return b if self is a else a

    def is_reachable(self) -> bool:
        with self._link.lock:
            return self._link.reachable and self.peer._receiver is not None

    def set_reachable(self, reachable: bool) -> None:
        """Flip the shared link, notifying both ends on change."""
        with self._link.lock:
            if self._link.reachable == reachable:
                return
            self._link.reachable = reachable
            listeners = [e._listener for e in self._link.endpoints]
        logger.debug(f"[SYNC] link {'up' if reachable else 'down'}")
        for listener in listeners:
            if listener is not None:
                listener(reachable)

    def send(self, data: bytes) -> None:
        with self._link.lock:
            receiver = self.peer._receiver if self._link.reachable else None
        if receiver is None:
            self.dropped_count += 1
            raise ChannelError(f"{self.name}: peer not reachable")
        self.sent_count += 1
        receiver(data)

    def set_receiver(self, receiver: Receiver | None) -> None:
        """Attach this end.  The peer hears about it as a reachability change."""
        with self._link.lock:
            was_attached = self._receiver is not None
            self._receiver = receiver
            changed = was_attached != (receiver is not None) and self._link.reachable
            listener = self.peer._listener if self._link.endpoints else None
        if changed and listener is not None:
            listener(receiver is not None)

    def set_reachability_listener(self, listener: ReachabilityListener | None) -> None:
        self._listener = listener
