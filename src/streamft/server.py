from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import ServerConfig
from .errors import TransferError
from .handshake import TransferMetadata
from .net import SocketChannel, address_of, detect_local_ip, listening
from .session import ServerSession, StateSink

log = logging.getLogger(__name__)

ACCEPT_POLL_S = 0.5


@dataclass(frozen=True, slots=True)
class FileSource:
    """File contents loaded once and shared read-only by every session."""

    path: str
    data: bytes
    display_name: str

    @classmethod
    def from_path(cls, path: str, display_name: Optional[str] = None) -> "FileSource":
        with open(path, "rb") as f:
            data = f.read()
        return cls(path=path, data=data, display_name=display_name or os.path.basename(path))

    @property
    def size(self) -> int:
        return len(self.data)

    def metadata(self, server_name: str) -> TransferMetadata:
        return TransferMetadata(server_name=server_name, file_name=self.display_name, file_size=self.size)


class FileServer:
    """Accepts connections and serves one file, one session per channel."""

    def __init__(
        self,
        config: ServerConfig,
        source: Optional[FileSource] = None,
        on_state: Optional[StateSink] = None,
    ):
        self.config = config
        self.source = source or FileSource.from_path(config.file_path, config.display_name)
        self.metadata = self.source.metadata(config.server_name)
        self.on_state = on_state
        self._stopping = threading.Event()
        self._threads: List[threading.Thread] = []

        self.sock = listening(config.host, config.port, config.backlog)
        self.sock.settimeout(ACCEPT_POLL_S)
        log.info(
            'listening on %s:%d  file="%s"  size=%d bytes',
            detect_local_ip(),
            self.address[1],
            self.source.path,
            self.source.size,
        )

    @property
    def address(self) -> Tuple[str, int]:
        return address_of(self.sock)

    def accept(self) -> Optional[SocketChannel]:
        """Wait up to one poll interval for a connection."""
        while True:
            try:
                conn, _ = self.sock.accept()
            except InterruptedError:
                continue
            except TimeoutError:
                return None
            except OSError:
                if self._stopping.is_set():
                    return None
                raise
            return SocketChannel(conn, self.config.timeout)

    def handle(self, channel: SocketChannel) -> ServerSession:
        peer = channel.peer
        log.info("accepted from %s", peer)
        session = ServerSession(
            channel,
            self.metadata,
            self.source.data,
            chunk_max=self.config.chunk_max,
            on_state=self.on_state,
        )
        try:
            session.run()
        except TransferError as exc:
            log.warning("session with %s failed in state %s: %s", peer, session.state.value, exc)
            return session
        except Exception:
            log.exception("session with %s crashed in state %s", peer, session.state.value)
            return session
        log.info("closed connection to %s", peer)
        return session

    def serve_one(self) -> ServerSession:
        """Serve exactly one client on the calling thread."""
        while True:
            channel = self.accept()
            if channel is not None:
                return self.handle(channel)
            if self._stopping.is_set():
                raise TransferError("server stopped before a client connected")

    def serve_forever(self) -> None:
        while not self._stopping.is_set():
            channel = self.accept()
            if channel is None:
                continue
            t = threading.Thread(target=self.handle, args=(channel,), name=f"session-{channel.peer}", daemon=True)
            t.start()
            self._threads = [x for x in self._threads if x.is_alive()]
            self._threads.append(t)
            log.info("waiting for next client...")

    def shutdown(self) -> None:
        self._stopping.set()
        self.sock.close()

    def join(self, timeout: Optional[float] = None) -> None:
        for t in list(self._threads):
            t.join(timeout)

    def __enter__(self) -> "FileServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
