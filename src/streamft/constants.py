from __future__ import annotations

LENGTH_FORMAT = "!I"  # string frame length prefix
SIZE_FORMAT = "!Q"  # file size in the metadata exchange

MAX_FRAME_LEN = 0xFFFFFFFF
MAX_FILE_SIZE = 0xFFFFFFFFFFFFFFFF
MAX_STRING_LEN = 16 * 1024 * 1024

CHUNK_MAX = 100

MARKER_MORE = b"1"
MARKER_END = b"0"
SENTINEL = MARKER_END * 2

DEFAULT_QUERY = "Query file name"
DEFAULT_READY = "Start"

MIN_PORT = 5001
MAX_PORT = 65535
DEFAULT_BACKLOG = 8
DEFAULT_HOST = "0.0.0.0"
