from __future__ import annotations

import io
import threading
from dataclasses import dataclass
from typing import Optional

from .config import ServerConfig
from .constants import CHUNK_MAX
from .net import SocketChannel
from .server import FileServer, FileSource
from .session import ClientSession
from .transfer import check_chunk_max


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    chunks: int
    duration_s: float
    throughput_mbps: float


def run_benchmark(
    *,
    size_bytes: int,
    chunk_max: int = CHUNK_MAX,
    timeout: Optional[float] = 10.0,
) -> BenchmarkResult:
    """Serve ``size_bytes`` of data to a client over loopback TCP and time it."""
    check_chunk_max(chunk_max)
    payload = bytes(i % 251 for i in range(size_bytes))
    source = FileSource(path="<bench>", data=payload, display_name="bench.bin")
    config = ServerConfig(
        server_name="bench-server",
        file_path=source.path,
        port=0,
        host="127.0.0.1",
        timeout=timeout,
        chunk_max=chunk_max,
    )

    server = FileServer(config, source=source)
    t = threading.Thread(target=server.serve_one, daemon=True)
    t.start()

    out = io.BytesIO()
    try:
        channel = SocketChannel.connect("127.0.0.1", server.address[1], timeout=timeout)
        result = ClientSession(channel, "bench-client", out.write, chunk_max=chunk_max).run()
    finally:
        t.join(timeout=10.0)
        server.shutdown()

    assert out.getvalue() == payload

    duration_s = max(0.001, result.metrics.duration_s)
    return BenchmarkResult(
        bytes_transferred=result.bytes_received,
        chunks=result.chunks,
        duration_s=duration_s,
        throughput_mbps=(size_bytes * 8 / 1_000_000) / duration_s,
    )
