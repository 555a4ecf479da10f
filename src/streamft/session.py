"""Per-channel session state machines.

Both sides walk the same linear path::

    CONNECTED -> HANDSHAKE_SENT -> AWAITING_METADATA -> METADATA_RECEIVED
              -> AWAITING_READY -> STREAMING -> TERMINATED

with FAILED reachable from any non-terminal state. The channel is closed on
entry to either terminal state, and a session can only be run once.
"""
from __future__ import annotations

import abc
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .constants import CHUNK_MAX, DEFAULT_QUERY, DEFAULT_READY
from .errors import SessionStateError
from .handshake import (
    ClientHello,
    TransferMetadata,
    await_ready,
    receive_hello,
    receive_metadata,
    send_hello,
    send_metadata,
    send_ready,
)
from .net import Buffer, Channel
from .transfer import Sink, receive_payload, send_payload

log = logging.getLogger(__name__)


class SessionState(enum.Enum):
    CONNECTED = "connected"
    HANDSHAKE_SENT = "handshake-sent"
    AWAITING_METADATA = "awaiting-metadata"
    METADATA_RECEIVED = "metadata-received"
    AWAITING_READY = "awaiting-ready"
    STREAMING = "streaming"
    TERMINATED = "terminated"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.TERMINATED, SessionState.FAILED)


PATH = (
    SessionState.CONNECTED,
    SessionState.HANDSHAKE_SENT,
    SessionState.AWAITING_METADATA,
    SessionState.METADATA_RECEIVED,
    SessionState.AWAITING_READY,
    SessionState.STREAMING,
    SessionState.TERMINATED,
)

StateSink = Callable[["Session", SessionState], None]


@dataclass(slots=True)
class Metrics:
    bytes_transferred: int = 0
    chunks: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_transferred * 8 / 1_000_000) / self.duration_s


@dataclass(frozen=True, slots=True)
class TransferResult:
    metadata: TransferMetadata
    metrics: Metrics

    @property
    def bytes_received(self) -> int:
        return self.metrics.bytes_transferred

    @property
    def chunks(self) -> int:
        return self.metrics.chunks


class Session(abc.ABC):
    role = "session"

    def __init__(self, channel: Channel, on_state: Optional[StateSink] = None):
        self.channel = channel
        self.on_state = on_state
        self.state = SessionState.CONNECTED
        self.metrics = Metrics()
        self.error: Optional[BaseException] = None
        self._started = False

    def advance(self, to: SessionState) -> None:
        if self.state.terminal:
            raise SessionStateError(f"{self.role} session already {self.state.value}")
        if to is not SessionState.FAILED:
            expected = PATH[PATH.index(self.state) + 1]
            if to is not expected:
                raise SessionStateError(
                    f"{self.role} session cannot go from {self.state.value} to {to.value}"
                )
        self.state = to
        log.debug("%s session -> %s", self.role, to.value)
        if to.terminal:
            self.metrics.end_ts = time.monotonic()
            self.channel.close()
        if self.on_state is not None:
            self.on_state(self, to)

    def run(self):
        if self._started:
            raise SessionStateError(f"{self.role} session cannot be reused")
        self._started = True
        try:
            return self._run()
        except Exception as exc:
            self.error = exc
            if not self.state.terminal:
                self.advance(SessionState.FAILED)
            raise

    @abc.abstractmethod
    def _run(self):
        ...


class ServerSession(Session):
    """Serve one file over one accepted channel."""

    role = "server"

    def __init__(
        self,
        channel: Channel,
        metadata: TransferMetadata,
        payload: Buffer,
        chunk_max: int = CHUNK_MAX,
        on_state: Optional[StateSink] = None,
    ):
        super().__init__(channel, on_state)
        if len(memoryview(payload).cast("B")) != metadata.file_size:
            raise ValueError("payload length does not match metadata file_size")
        self.metadata = metadata
        self.payload = payload
        self.chunk_max = chunk_max
        self.hello: Optional[ClientHello] = None

    def _run(self) -> Metrics:
        self.hello = receive_hello(self.channel)
        self.advance(SessionState.HANDSHAKE_SENT)
        log.info("client says: %s", self.hello.client_name)

        self.advance(SessionState.AWAITING_METADATA)
        send_metadata(self.channel, self.metadata)
        self.advance(SessionState.METADATA_RECEIVED)

        self.advance(SessionState.AWAITING_READY)
        await_ready(self.channel)
        log.info("handshake complete with %s", self.hello.client_name)

        self.advance(SessionState.STREAMING)
        self.metrics.chunks = send_payload(self.channel, self.payload, self.chunk_max)
        self.metrics.bytes_transferred = self.metadata.file_size
        self.advance(SessionState.TERMINATED)
        log.info(
            "done sending %s (%d bytes, %d chunks) to %s",
            self.metadata.file_name,
            self.metadata.file_size,
            self.metrics.chunks,
            self.hello.client_name,
        )
        return self.metrics


class ClientSession(Session):
    """Fetch the server's file, handing each chunk to ``sink``."""

    role = "client"

    def __init__(
        self,
        channel: Channel,
        client_name: str,
        sink: Sink,
        query: str = DEFAULT_QUERY,
        ready: str = DEFAULT_READY,
        chunk_max: int = CHUNK_MAX,
        on_state: Optional[StateSink] = None,
    ):
        super().__init__(channel, on_state)
        self.hello = ClientHello(client_name=client_name, query=query)
        self.sink = sink
        self.ready = ready
        self.chunk_max = chunk_max
        self.metadata: Optional[TransferMetadata] = None

    def _deliver(self, chunk: bytes) -> None:
        self.metrics.bytes_transferred += len(chunk)
        self.sink(chunk)

    def _run(self) -> TransferResult:
        send_hello(self.channel, self.hello)
        self.advance(SessionState.HANDSHAKE_SENT)

        self.advance(SessionState.AWAITING_METADATA)
        meta = receive_metadata(self.channel)
        self.metadata = meta
        self.advance(SessionState.METADATA_RECEIVED)
        log.info("client name : %s", self.hello.client_name)
        log.info("server name : %s", meta.server_name)
        log.info("file name   : %s", meta.file_name)
        log.info("file size   : %d bytes", meta.file_size)

        self.advance(SessionState.AWAITING_READY)
        send_ready(self.channel, self.ready)

        self.advance(SessionState.STREAMING)
        self.metrics.chunks = receive_payload(self.channel, meta.file_size, self._deliver, self.chunk_max)
        self.advance(SessionState.TERMINATED)
        log.info("received termination pair; %d bytes in %d chunks", meta.file_size, self.metrics.chunks)
        return TransferResult(metadata=meta, metrics=self.metrics)
