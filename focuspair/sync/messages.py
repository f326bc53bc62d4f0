"""Wire messages exchanged between the phone and watch stores.

Every message travels inside one versioned JSON envelope::

    {"version": 1, "type": "add_session", "payload": {...}}

The set of message types is closed.  Anything that does not decode to one
of them raises :class:`MessageError`; the coordinator logs and drops it.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from ..store.models import Session, StoreSnapshot


WIRE_VERSION = 1


class MessageError(ValueError):
    """Raised for payloads that are not a valid message."""


def new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class AddSession:
    """Push: a session was just recorded on the sender."""

    session: Session


@dataclass(frozen=True)
class RequestFullState:
    """Pull: ask the peer for its whole store."""

    request_id: str = field(default_factory=new_request_id)


@dataclass(frozen=True)
class FullStateResponse:
    """Reply to :class:`RequestFullState` carrying the sender's snapshot."""

    request_id: str
    snapshot: StoreSnapshot


@dataclass(frozen=True)
class ContextUpdate:
    """Summary for the peer's glanceable surfaces (complications)."""

    streak: int
    today_count: int
    sent_at: datetime


Message = Union[AddSession, RequestFullState, FullStateResponse, ContextUpdate]

_TYPE_NAMES: dict[type, str] = {
    AddSession: "add_session",
    RequestFullState: "request_full_state",
    FullStateResponse: "full_state_response",
    ContextUpdate: "context_update",
}


# ── encoding ─────────────────────────────────────────────────────────────


def _payload(message: Message) -> dict:
    if isinstance(message, AddSession):
        return {"session": message.session.to_dict()}
    if isinstance(message, RequestFullState):
        return {"request_id": message.request_id}
    if isinstance(message, FullStateResponse):
        return {
            "request_id": message.request_id,
            "snapshot": message.snapshot.to_dict(),
        }
    if isinstance(message, ContextUpdate):
        return {
            "streak": message.streak,
            "today_count": message.today_count,
            "sent_at": message.sent_at.isoformat(),
        }
    raise TypeError(f"not a sync message: {message!r}")


def encode(message: Message) -> bytes:
    envelope = {
        "version": WIRE_VERSION,
        "type": _TYPE_NAMES[type(message)],
        "payload": _payload(message),
    }
    return json.dumps(envelope, separators=(",", ":")).encode("utf-8")


# ── decoding ─────────────────────────────────────────────────────────────


def decode(data: bytes) -> Message:
    try:
        envelope = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MessageError(f"undecodable message: {exc}") from exc
    if not isinstance(envelope, dict):
        raise MessageError("message envelope must be an object")

    version = envelope.get("version")
    if version != WIRE_VERSION:
        raise MessageError(f"unsupported wire version {version!r}")

    kind = envelope.get("type")
    payload = envelope.get("payload")
    if not isinstance(payload, dict):
        raise MessageError("message payload must be an object")

    try:
        if kind == "add_session":
            return AddSession(Session.from_dict(payload["session"]))
        if kind == "request_full_state":
            return RequestFullState(str(payload["request_id"]))
        if kind == "full_state_response":
            return FullStateResponse(
                request_id=str(payload["request_id"]),
                snapshot=StoreSnapshot.from_dict(payload["snapshot"]),
            )
        if kind == "context_update":
            return ContextUpdate(
                streak=int(payload["streak"]),
                today_count=int(payload["today_count"]),
                sent_at=datetime.fromisoformat(payload["sent_at"]),
            )
    except (KeyError, ValueError, TypeError, AttributeError) as exc:
        raise MessageError(f"malformed {kind} payload: {exc}") from exc

    raise MessageError(f"unknown message type {kind!r}")
