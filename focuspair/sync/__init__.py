"""Cross-device sync package."""

from .channel import Channel, ChannelError, LoopbackChannel
from .coordinator import SyncCoordinator, SyncStatus
from .messages import (
    AddSession,
    ContextUpdate,
    FullStateResponse,
    Message,
    MessageError,
    RequestFullState,
    WIRE_VERSION,
    decode,
    encode,
)

__all__ = [
    "Channel",
    "ChannelError",
    "LoopbackChannel",
    "SyncCoordinator",
    "SyncStatus",
    "AddSession",
    "ContextUpdate",
    "FullStateResponse",
    "Message",
    "MessageError",
    "RequestFullState",
    "WIRE_VERSION",
    "decode",
    "encode",
]
