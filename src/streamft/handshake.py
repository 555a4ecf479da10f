"""Metadata handshake that precedes the payload.

Order on the wire::

    client -> server   string  client name
    client -> server   string  query (reserved, not interpreted)
    server -> client   string  server name
    server -> client   string  file name
    server -> client   uint64  file size
    client -> server   string  ready signal (content not interpreted)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from .codec import encode_string, encode_u64, read_string, read_u64, write_string
from .constants import DEFAULT_QUERY, DEFAULT_READY
from .net import Channel

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TransferMetadata:
    server_name: str
    file_name: str
    file_size: int

    def to_bytes(self) -> bytes:
        return encode_string(self.server_name) + encode_string(self.file_name) + encode_u64(self.file_size)


@dataclass(frozen=True, slots=True)
class ClientHello:
    client_name: str
    query: str = DEFAULT_QUERY


def send_hello(channel: Channel, hello: ClientHello) -> None:
    write_string(channel, hello.client_name)
    write_string(channel, hello.query)


def receive_hello(channel: Channel) -> ClientHello:
    client_name = read_string(channel)
    query = read_string(channel)
    log.debug("client %r sent reserved query %r", client_name, query)
    return ClientHello(client_name=client_name, query=query)


def send_metadata(channel: Channel, meta: TransferMetadata) -> None:
    channel.write_exact(meta.to_bytes())


def receive_metadata(channel: Channel) -> TransferMetadata:
    server_name = read_string(channel)
    file_name = read_string(channel)
    file_size = read_u64(channel)
    return TransferMetadata(server_name=server_name, file_name=file_name, file_size=file_size)


def send_ready(channel: Channel, signal: str = DEFAULT_READY) -> None:
    write_string(channel, signal)


def await_ready(channel: Channel) -> str:
    # any string counts as the go-ahead
    return read_string(channel)
