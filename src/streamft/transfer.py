from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator

from .constants import CHUNK_MAX, MARKER_END, MARKER_MORE, SENTINEL
from .errors import ProtocolViolation
from .net import Buffer, Channel

log = logging.getLogger(__name__)

Sink = Callable[[bytes], object]


@dataclass(frozen=True, slots=True)
class ChunkSegment:
    continuation: bool
    payload: Buffer = b""

    def to_bytes(self) -> bytes:
        if not self.continuation:
            return SENTINEL
        return MARKER_MORE + bytes(self.payload)


def check_chunk_max(chunk_max: int) -> None:
    if not 0 < chunk_max <= CHUNK_MAX:
        raise ValueError(f"chunk_max must be in 1..{CHUNK_MAX}, got {chunk_max}")


def iter_segments(payload: Buffer, chunk_max: int = CHUNK_MAX) -> Iterator[ChunkSegment]:
    """Yield the segments a sender emits for ``payload``; the sentinel is last.

    Payload slices are memoryviews into ``payload``, so no data is copied.
    """
    check_chunk_max(chunk_max)
    view = memoryview(payload).cast("B")
    sent = 0
    while sent < len(view):
        n = min(chunk_max, len(view) - sent)
        yield ChunkSegment(continuation=True, payload=view[sent : sent + n])
        sent += n
    yield ChunkSegment(continuation=False)


def send_payload(channel: Channel, payload: Buffer, chunk_max: int = CHUNK_MAX) -> int:
    """Write ``payload`` as marked chunks followed by the sentinel.

    Returns the number of payload chunks written (0 for an empty payload).
    """
    chunks = 0
    for seg in iter_segments(payload, chunk_max):
        if not seg.continuation:
            channel.write_exact(SENTINEL)
            break
        channel.write_exact(MARKER_MORE)
        channel.write_exact(seg.payload)
        chunks += 1
        log.debug("chunk %d: %d bytes", chunks, len(seg.payload))
    return chunks


def receive_payload(channel: Channel, file_size: int, sink: Sink, chunk_max: int = CHUNK_MAX) -> int:
    """Read marked chunks until the sentinel, passing each chunk to ``sink``.

    The amount read per chunk is derived from ``file_size`` alone, so no more
    than ``file_size`` payload bytes are ever requested from the channel.
    Returns the number of chunks delivered.
    """
    check_chunk_max(chunk_max)
    received = 0
    chunks = 0
    while True:
        marker = channel.read_exact(1)
        if marker == MARKER_END:
            second = channel.read_exact(1)
            if second != MARKER_END:
                raise ProtocolViolation(f"bad sentinel byte {second[0]:#04x} after {MARKER_END!r}")
            break
        if marker != MARKER_MORE:
            raise ProtocolViolation(f"unexpected marker byte {marker[0]:#04x}")

        want = min(chunk_max, file_size - received)
        if want == 0:
            log.debug("continuation marker with nothing left to receive; ignoring")
            continue
        chunk = channel.read_exact(want)
        sink(chunk)
        received += want
        chunks += 1
        log.debug("chunk %d: %d bytes (%d/%d)", chunks, want, received, file_size)

    if received != file_size:
        raise ProtocolViolation(f"sentinel after {received} of {file_size} bytes")
    return chunks
