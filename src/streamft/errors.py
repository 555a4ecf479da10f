from __future__ import annotations


class TransferError(Exception):
    """Base class for every failure that aborts a session."""


class TransportError(TransferError):
    pass


class DeadlineExceeded(TransportError):
    pass


class PeerClosed(TransferError):
    def __init__(self, expected: int, received: int):
        super().__init__(f"peer closed after {received} of {expected} bytes")
        self.expected = expected
        self.received = received


class ProtocolViolation(TransferError):
    pass


class SessionStateError(TransferError):
    pass
