from __future__ import annotations

import socket

import pytest

from streamft.net import SocketChannel


@pytest.fixture
def channel_pair():
    a, b = socket.socketpair()
    left, right = SocketChannel(a, timeout=5.0), SocketChannel(b, timeout=5.0)
    yield left, right
    left.close()
    right.close()
