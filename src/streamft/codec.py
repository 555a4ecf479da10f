from __future__ import annotations

import struct
from typing import Optional, Union

from .constants import LENGTH_FORMAT, MAX_FILE_SIZE, MAX_FRAME_LEN, MAX_STRING_LEN, SIZE_FORMAT
from .errors import ProtocolViolation
from .net import Channel

LENGTH_STRUCT = struct.Struct(LENGTH_FORMAT)
SIZE_STRUCT = struct.Struct(SIZE_FORMAT)

Text = Union[bytes, str]


def _as_bytes(s: Text) -> bytes:
    # surrogateescape sends names taken from the filesystem as their raw bytes
    return s.encode("utf-8", "surrogateescape") if isinstance(s, str) else bytes(s)


def encode_string(s: Text) -> bytes:
    body = _as_bytes(s)
    if len(body) > MAX_FRAME_LEN:
        raise ValueError(f"string too long for a frame: {len(body)} bytes")
    return LENGTH_STRUCT.pack(len(body)) + body


def decode_string(channel: Channel, max_len: Optional[int] = MAX_STRING_LEN) -> bytes:
    (n,) = LENGTH_STRUCT.unpack(channel.read_exact(LENGTH_STRUCT.size))
    if max_len is not None and n > max_len:
        raise ProtocolViolation(f"frame length {n} exceeds limit {max_len}")
    return channel.read_exact(n)


def encode_u64(n: int) -> bytes:
    if not 0 <= n <= MAX_FILE_SIZE:
        raise ValueError(f"value out of uint64 range: {n}")
    return SIZE_STRUCT.pack(n)


def decode_u64(channel: Channel) -> int:
    (n,) = SIZE_STRUCT.unpack(channel.read_exact(SIZE_STRUCT.size))
    return n


def write_string(channel: Channel, s: Text) -> None:
    channel.write_exact(encode_string(s))


def read_string(channel: Channel, max_len: Optional[int] = MAX_STRING_LEN) -> str:
    """Read a frame as UTF-8; undecodable bytes survive as surrogate escapes."""
    return decode_string(channel, max_len).decode("utf-8", "surrogateescape")


def write_u64(channel: Channel, n: int) -> None:
    channel.write_exact(encode_u64(n))


def read_u64(channel: Channel) -> int:
    return decode_u64(channel)
