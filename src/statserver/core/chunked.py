"""
=============================================================================
CHUNKED TRANSFER CODING
=============================================================================

A chunked body is a run of size-prefixed chunks ended by a zero-size chunk
and an (optional) trailer section:

    5\\r\\n            ← chunk size in hex, optional ";ext" after it
    hello\\r\\n        ← chunk data
    6\\r\\n
     world\\r\\n
    0\\r\\n            ← last chunk
    \\r\\n             ← end of (empty) trailer section

The connection uses decode_chunked() to find where the body ends, so a
pipelined request after a chunked one starts at the right byte. The
parser uses it again to recover the body itself.

=============================================================================
"""

import re
from typing import Optional, Tuple


CRLF = b"\r\n"

CHUNK_SIZE_PATTERN = re.compile(rb"[0-9A-Fa-f]+")


class ChunkedEncodingError(ValueError):
    """The chunked body does not follow the chunk grammar."""


def decode_chunked(data: bytes, start: int = 0) -> Optional[Tuple[bytes, int]]:
    """
    Decode a chunked body beginning at data[start].

    Returns:
        (body, end) where end is the offset just past the trailer section,
        or None if data does not yet hold the complete body.

    Raises:
        ChunkedEncodingError: On a bad chunk size or missing CRLF.
    """
    body = bytearray()
    pos = start

    while True:
        line_end = data.find(CRLF, pos)
        if line_end == -1:
            return None

        size_text = data[pos:line_end].split(b";", 1)[0].strip()
        if not CHUNK_SIZE_PATTERN.fullmatch(size_text):
            raise ChunkedEncodingError(f"Invalid chunk size: {size_text!r}")

        size = int(size_text, 16)
        pos = line_end + len(CRLF)

        if size == 0:
            break

        data_end = pos + size
        if len(data) < data_end + len(CRLF):
            return None
        if data[data_end:data_end + len(CRLF)] != CRLF:
            raise ChunkedEncodingError("Chunk data not followed by CRLF")

        body += data[pos:data_end]
        pos = data_end + len(CRLF)

    # Trailer fields, one per line, up to an empty line
    while True:
        line_end = data.find(CRLF, pos)
        if line_end == -1:
            return None
        line = data[pos:line_end]
        pos = line_end + len(CRLF)
        if not line:
            return bytes(body), pos


def is_chunked(transfer_encoding: str) -> bool:
    """True if "chunked" is the final coding in a Transfer-Encoding value."""
    codings = [c.strip().lower() for c in transfer_encoding.split(",")]
    return bool(codings) and codings[-1] == "chunked"
