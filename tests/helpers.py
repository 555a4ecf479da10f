from __future__ import annotations

from streamft.errors import PeerClosed
from streamft.net import Channel


class FakeSocket:
    """Socket stand-in that moves at most ``step`` bytes per call.

    ``errors`` are raised, in order, before any data moves.
    """

    def __init__(self, incoming: bytes = b"", step: int = 3, errors=None):
        self.incoming = bytearray(incoming)
        self.step = step
        self.errors = list(errors or [])
        self.sent = bytearray()
        self.send_calls = 0
        self.recv_calls = 0
        self.closed = 0
        self.timeout = None

    def settimeout(self, value):
        self.timeout = value

    def send(self, data) -> int:
        self.send_calls += 1
        if self.errors:
            raise self.errors.pop(0)
        n = min(self.step, len(data))
        self.sent += bytes(data[:n])
        return n

    def recv_into(self, buffer, nbytes=0) -> int:
        self.recv_calls += 1
        if self.errors:
            raise self.errors.pop(0)
        n = min(self.step, nbytes or len(buffer), len(self.incoming))
        buffer[:n] = self.incoming[:n]
        del self.incoming[:n]
        return n

    def getpeername(self):
        return ("127.0.0.1", 5555)

    def close(self):
        self.closed += 1


class MemoryChannel(Channel):
    """Channel over fixed input bytes; records every write and read size."""

    def __init__(self, incoming: bytes = b""):
        self.incoming = bytearray(incoming)
        self.written = bytearray()
        self.reads: list[int] = []
        self.close_calls = 0

    def read_exact(self, length: int) -> bytes:
        self.reads.append(length)
        if len(self.incoming) < length:
            got = len(self.incoming)
            self.incoming.clear()
            raise PeerClosed(expected=length, received=got)
        data = bytes(self.incoming[:length])
        del self.incoming[:length]
        return data

    def write_exact(self, data) -> None:
        self.written += bytes(data)

    def close(self) -> None:
        self.close_calls += 1


