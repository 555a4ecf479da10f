from __future__ import annotations

import threading

import pytest

from streamft.codec import encode_string
from streamft.errors import PeerClosed, ProtocolViolation, SessionStateError
from streamft.handshake import TransferMetadata
from streamft.session import PATH, ClientSession, ServerSession, Session, SessionState
from streamft.transfer import send_payload
from tests.helpers import MemoryChannel

CLIENT_FRAMES = encode_string("client") + encode_string("Query file name") + encode_string("Start")


def make_payload(n: int) -> bytes:
    return bytes((i * 31) % 256 for i in range(n))


def run_pair(client_ch, server_ch, payload: bytes):
    meta = TransferMetadata(server_name="srv", file_name="data.bin", file_size=len(payload))
    server_states, client_states = [], []
    server = ServerSession(server_ch, meta, payload, on_state=lambda s, st: server_states.append(st))
    t = threading.Thread(target=server.run)
    t.start()
    out = bytearray()
    result = ClientSession(client_ch, "client", out.extend, on_state=lambda s, st: client_states.append(st)).run()
    t.join(5.0)
    return result, bytes(out), server, server_states, client_states


def test_end_to_end_250_bytes(channel_pair):
    client_ch, server_ch = channel_pair
    payload = make_payload(250)
    result, out, server, server_states, client_states = run_pair(client_ch, server_ch, payload)

    assert out == payload
    assert result.metadata == TransferMetadata("srv", "data.bin", 250)
    assert result.chunks == 3
    assert result.bytes_received == 250
    assert server.hello.client_name == "client"
    assert server.metrics.chunks == 3
    assert server_states == list(PATH[1:])
    assert client_states == list(PATH[1:])
    assert client_ch.closed and server_ch.closed


def test_end_to_end_empty_file(channel_pair):
    client_ch, server_ch = channel_pair
    result, out, server, _, _ = run_pair(client_ch, server_ch, b"")
    assert out == b""
    assert result.metadata.file_size == 0
    assert result.chunks == 0
    assert server.state is SessionState.TERMINATED


def test_server_wire_output_is_deterministic():
    payload = make_payload(321)
    meta = TransferMetadata("srv", "data.bin", len(payload))
    outputs = []
    for _ in range(2):
        ch = MemoryChannel(CLIENT_FRAMES)
        ServerSession(ch, meta, payload).run()
        outputs.append(bytes(ch.written))

    expected = MemoryChannel()
    send_payload(expected, payload)
    assert outputs[0] == outputs[1] == meta.to_bytes() + bytes(expected.written)


def test_client_fails_on_bad_marker():
    meta = TransferMetadata("srv", "f", 10)
    ch = MemoryChannel(meta.to_bytes() + b"?" + b"x" * 10 + b"00")
    states = []
    out = []
    session = ClientSession(ch, "client", out.append, on_state=lambda s, st: states.append(st))
    with pytest.raises(ProtocolViolation):
        session.run()
    assert session.state is SessionState.FAILED
    assert states[-1] is SessionState.FAILED
    assert isinstance(session.error, ProtocolViolation)
    assert out == []
    assert ch.close_calls == 1


def test_server_fails_when_client_leaves_mid_handshake():
    ch = MemoryChannel(encode_string("client"))
    session = ServerSession(ch, TransferMetadata("srv", "f", 0), b"")
    with pytest.raises(PeerClosed):
        session.run()
    assert session.state is SessionState.FAILED
    assert ch.close_calls == 1


def test_session_is_single_use():
    ch = MemoryChannel(CLIENT_FRAMES)
    session = ServerSession(ch, TransferMetadata("srv", "f", 0), b"")
    session.run()
    with pytest.raises(SessionStateError):
        session.run()
    assert ch.close_calls == 1


def test_transitions_cannot_skip_states():
    session = ClientSession(MemoryChannel(), "client", lambda c: None)
    with pytest.raises(SessionStateError):
        session.advance(SessionState.STREAMING)
    session.advance(SessionState.HANDSHAKE_SENT)
    with pytest.raises(SessionStateError):
        session.advance(SessionState.HANDSHAKE_SENT)


def test_no_transitions_out_of_terminal_state():
    ch = MemoryChannel()
    session = ClientSession(ch, "client", lambda c: None)
    session.advance(SessionState.FAILED)
    with pytest.raises(SessionStateError):
        session.advance(SessionState.FAILED)
    assert ch.close_calls == 1


def test_payload_must_match_declared_size():
    with pytest.raises(ValueError):
        ServerSession(MemoryChannel(), TransferMetadata("srv", "f", 5), b"abc")


def test_base_session_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Session(MemoryChannel())
