from __future__ import annotations

import abc
import logging
import socket
from typing import Tuple, Union

from .constants import DEFAULT_BACKLOG
from .errors import DeadlineExceeded, PeerClosed, TransportError

log = logging.getLogger(__name__)

Buffer = Union[bytes, bytearray, memoryview]


class Channel(abc.ABC):
    """A connected byte stream with all-or-nothing reads and writes."""

    @abc.abstractmethod
    def read_exact(self, length: int) -> bytes:
        ...

    @abc.abstractmethod
    def write_exact(self, data: Buffer) -> None:
        ...

    @abc.abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self) -> "Channel":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class SocketChannel(Channel):
    """Exact I/O over a stream socket.

    ``timeout`` is applied to every underlying send/recv; ``None`` blocks
    forever, matching the plain protocol.
    """

    def __init__(self, sock: socket.socket, timeout: float | None = None):
        self.sock = sock
        self.closed = False
        if timeout is not None:
            sock.settimeout(timeout)

    @classmethod
    def connect(cls, host: str, port: int, timeout: float | None = None) -> "SocketChannel":
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as exc:
            raise TransportError(f"connect to {host}:{port} failed: {exc}") from exc
        return cls(sock, timeout)

    @property
    def peer(self) -> str:
        return peer_to_string(self.sock)

    def write_exact(self, data: Buffer) -> None:
        view = memoryview(data).cast("B")
        total = len(view)
        while view:
            try:
                n = self.sock.send(view)
            except InterruptedError:
                continue
            except TimeoutError as exc:
                raise DeadlineExceeded(f"send timed out with {len(view)} of {total} bytes pending") from exc
            except OSError as exc:
                raise TransportError(f"send failed: {exc}") from exc
            view = view[n:]
        log.debug("wrote %d bytes", total)

    def read_exact(self, length: int) -> bytes:
        if length == 0:
            return b""
        buf = bytearray(length)
        view = memoryview(buf)
        got = 0
        while got < length:
            try:
                n = self.sock.recv_into(view[got:], length - got)
            except InterruptedError:
                continue
            except TimeoutError as exc:
                raise DeadlineExceeded(f"recv timed out after {got} of {length} bytes") from exc
            except OSError as exc:
                raise TransportError(f"recv failed: {exc}") from exc
            if n == 0:
                raise PeerClosed(expected=length, received=got)
            got += n
        log.debug("read %d bytes", length)
        return bytes(buf)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.sock.close()


def listening(host: str, port: int, backlog: int = DEFAULT_BACKLOG) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(backlog)
    except OSError:
        sock.close()
        raise
    return sock


def peer_to_string(sock: socket.socket) -> str:
    try:
        host, port = sock.getpeername()[:2]
    except OSError:
        return "?:?"
    return f"{host}:{port}"


def detect_local_ip() -> str:
    """Best-effort non-loopback IPv4 address of this host, for display only."""
    udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # connect() on UDP only selects a route; nothing is sent
        udp.connect(("10.255.255.255", 1))
        addr = udp.getsockname()[0]
    except OSError:
        addr = ""
    finally:
        udp.close()
    if addr and not addr.startswith("127."):
        return addr

    try:
        addr = socket.gethostbyname(socket.gethostname())
    except OSError:
        return "127.0.0.1"
    return addr or "127.0.0.1"


def address_of(sock: socket.socket) -> Tuple[str, int]:
    host, port = sock.getsockname()[:2]
    return host, port
