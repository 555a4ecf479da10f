from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .constants import CHUNK_MAX, DEFAULT_BACKLOG, DEFAULT_HOST, MAX_PORT, MIN_PORT
from .transfer import check_chunk_max


def check_port(port: int) -> None:
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"port must be > {MIN_PORT - 1} and <= {MAX_PORT}, got {port}")


def check_timeout(timeout: Optional[float]) -> None:
    if timeout is not None and timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")


@dataclass(frozen=True, slots=True)
class ServerConfig:
    server_name: str
    file_path: str
    port: int
    host: str = DEFAULT_HOST
    display_name: Optional[str] = None
    timeout: Optional[float] = None
    backlog: int = DEFAULT_BACKLOG
    chunk_max: int = CHUNK_MAX

    def validate(self) -> "ServerConfig":
        check_port(self.port)
        check_timeout(self.timeout)
        check_chunk_max(self.chunk_max)
        if not os.path.isfile(self.file_path):
            raise ValueError(f"cannot open file {self.file_path}")
        return self


@dataclass(frozen=True, slots=True)
class ClientConfig:
    host: str
    port: int
    client_name: str
    timeout: Optional[float] = None
    out: Optional[str] = None

    def validate(self) -> "ClientConfig":
        check_port(self.port)
        check_timeout(self.timeout)
        return self
