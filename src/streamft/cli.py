from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from typing import Optional

from .bench import run_benchmark
from .config import ClientConfig, ServerConfig, check_port
from .constants import CHUNK_MAX, DEFAULT_HOST
from .errors import TransferError
from .net import SocketChannel
from .server import FileServer
from .session import ClientSession, TransferResult
from .transfer import Sink, check_chunk_max

log = logging.getLogger("streamft")


def port_arg(value: str) -> int:
    try:
        port = int(value)
        check_port(port)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return port


def timeout_arg(value: str) -> float:
    try:
        timeout = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid timeout: {value!r}") from exc
    if timeout <= 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {value}")
    return timeout


def positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from exc
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return n


def chunk_arg(value: str) -> int:
    try:
        n = int(value)
        check_chunk_max(n)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return n


def server_config(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        server_name=args.name,
        file_path=args.file,
        port=args.port,
        host=args.host,
        display_name=args.display_name,
        timeout=args.timeout,
    )


def client_config(args: argparse.Namespace) -> ClientConfig:
    return ClientConfig(
        host=args.host,
        port=args.port,
        client_name=args.name,
        timeout=args.timeout,
        out=args.out,
    )


def cmd_serve(args: argparse.Namespace) -> int:
    server = FileServer(args.config)
    try:
        if args.once:
            session = server.serve_one()
            return 0 if session.error is None else 1
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("interrupted; shutting down")
    finally:
        server.shutdown()
    return 0


def fetch(config: ClientConfig, sink: Sink) -> TransferResult:
    with SocketChannel.connect(config.host, config.port, timeout=config.timeout) as channel:
        log.info("connected to %s", channel.peer)
        return ClientSession(channel, config.client_name, sink).run()


def cmd_fetch(args: argparse.Namespace) -> int:
    config: ClientConfig = args.config
    if config.out is None:
        result = fetch(config, sys.stdout.buffer.write)
        sys.stdout.buffer.flush()
        report = sys.stderr
    else:
        try:
            with open(config.out, "wb") as out:
                result = fetch(config, out.write)
        except TransferError:
            # a failed transfer leaves no partial output behind
            os.remove(config.out)
            raise
        report = sys.stdout

    payload = {
        "role": "client",
        "server": result.metadata.server_name,
        "file": result.metadata.file_name,
        "bytes": result.bytes_received,
        "chunks": result.chunks,
        "seconds": result.metrics.duration_s,
        "mbps": result.metrics.throughput_mbps,
    }
    print(json.dumps(payload, indent=2) if args.json else payload, file=report)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(size_bytes=args.size_bytes, chunk_max=args.chunk_max, timeout=args.timeout)
    payload = {"role": "bench", **asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="streamft", description="Single-file transfer over TCP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve", help="serve a file to every client that connects")
    serve.add_argument("name", help="server name sent in the handshake")
    serve.add_argument("file")
    serve.add_argument("port", type=port_arg)
    serve.add_argument("--host", default=DEFAULT_HOST)
    serve.add_argument("--display-name", default=None, help="file name announced to clients (default: basename)")
    serve.add_argument("--timeout", type=timeout_arg, default=None, help="per-read/write deadline in seconds")
    serve.add_argument("--once", action="store_true", help="serve a single client, then exit")
    serve.set_defaults(func=cmd_serve, make_config=server_config)

    fetch = sub.add_parser("fetch", help="fetch the file offered by a server")
    fetch.add_argument("host")
    fetch.add_argument("port", type=port_arg)
    fetch.add_argument("name", help="client name sent in the handshake")
    fetch.add_argument("--out", default=None, help="output path (default: stdout)")
    fetch.add_argument("--timeout", type=timeout_arg, default=None)
    fetch.add_argument("--json", action="store_true")
    fetch.set_defaults(func=cmd_fetch, make_config=client_config)

    bench = sub.add_parser("bench", help="loopback benchmark")
    bench.add_argument("--size-bytes", type=positive_int, default=5_000_000)
    bench.add_argument("--chunk-max", type=chunk_arg, default=CHUNK_MAX)
    bench.add_argument("--timeout", type=timeout_arg, default=10.0)
    bench.add_argument("--json", action="store_true")
    bench.set_defaults(func=cmd_bench, make_config=None)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")

    if args.make_config is not None:
        try:
            args.config = args.make_config(args).validate()
        except ValueError as exc:
            p.error(str(exc))

    try:
        return int(args.func(args))
    except (TransferError, OSError) as exc:
        log.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
