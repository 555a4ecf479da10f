"""streamft: one named file, one TCP connection.

Layers, leaves first:
- exact-count reads and writes over a stream socket (net)
- length-prefixed strings and big-endian u64 (codec)
- metadata handshake (handshake)
- '1'-marked chunks closed by a '0','0' sentinel (transfer)
- per-channel session state machines (session)
"""

from .errors import DeadlineExceeded, PeerClosed, ProtocolViolation, SessionStateError, TransferError, TransportError
from .handshake import TransferMetadata
from .session import ClientSession, ServerSession, SessionState

__all__ = [
    "ClientSession",
    "DeadlineExceeded",
    "PeerClosed",
    "ProtocolViolation",
    "ServerSession",
    "SessionState",
    "SessionStateError",
    "TransferError",
    "TransferMetadata",
    "TransportError",
]
