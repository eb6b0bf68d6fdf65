"""
Domain Services

Output accumulation for sandbox processes.
"""

from typing import List, Union

# Raw non-TTY Docker log streams are multiplexed: every frame starts with an
# 8-byte header [stream_type, 0, 0, 0, size (4 bytes, big endian)]. Clients
# that do not demultiplex hand such frames through unchanged.
FRAME_HEADER_SIZE = 8
_STREAM_TYPES = (0, 1, 2)


def strip_stream_framing(chunk: Union[bytes, str]) -> str:
    """
    Remove a leading stream-framing header from one output chunk.

    Chunks without a header are returned unchanged (decoded if bytes).
    """
    if isinstance(chunk, bytes):
        if (
            len(chunk) >= FRAME_HEADER_SIZE
            and chunk[0] in _STREAM_TYPES
            and chunk[1:4] == b"\x00\x00\x00"
        ):
            chunk = chunk[FRAME_HEADER_SIZE:]
        return chunk.decode("utf-8", errors="replace")

    if (
        len(chunk) >= FRAME_HEADER_SIZE
        and ord(chunk[0]) in _STREAM_TYPES
        and chunk[1:4] == "\x00\x00\x00"
    ):
        return chunk[FRAME_HEADER_SIZE:]
    return chunk


class OutputBuffer:
    """
    Accumulates the combined stdout/stderr of one sandbox process.

    Chunks are kept in arrival order; framing is stripped per chunk.
    """

    def __init__(self):
        self._chunks: List[str] = []

    def append(self, chunk: Union[bytes, str]) -> None:
        self._chunks.append(strip_stream_framing(chunk))

    def text(self) -> str:
        """Accumulated output, trimmed of surrounding whitespace."""
        return "".join(self._chunks).strip()

    def __len__(self) -> int:
        return len(self._chunks)
