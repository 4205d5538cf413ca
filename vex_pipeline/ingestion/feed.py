"""
Read newline-delimited CSAF documents from a compressed feed archive.

The Red Hat VEX archive is snappy-framed; one JSON document per line once
decompressed. Uncompressed files are supported for local fixtures.
"""
import logging
import tempfile
from typing import BinaryIO, Iterator

import snappy

logger = logging.getLogger(__name__)

COMPRESSIONS = {"snappy", "none"}


def iter_lines(stream: BinaryIO, compression: str = "snappy") -> Iterator[bytes]:
    """
    Yield each non-empty line of the decompressed stream, without its newline.

    Snappy input is decompressed into a temporary file first so the archive
    never has to fit in memory.

    Args:
        stream: Binary file-like object positioned at the archive start
        compression: "snappy" (framed format) or "none"

    Raises:
        ValueError: Unknown compression name
        snappy.UncompressError: Corrupt snappy framing
    """
    if compression not in COMPRESSIONS:
        raise ValueError(f"unsupported compression: {compression!r}")

    if compression == "none":
        yield from _lines(stream)
        return

    with tempfile.TemporaryFile() as plain:
        snappy.stream_decompress(stream, plain)
        plain.seek(0)
        yield from _lines(plain)


def _lines(stream: BinaryIO) -> Iterator[bytes]:
    total = 0
    for line in stream:
        line = line.rstrip(b"\r\n")
        if line.strip():
            total += 1
            yield line
    logger.debug("read %d documents from feed", total)
