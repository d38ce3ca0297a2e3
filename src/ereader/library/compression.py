"""Self-describing compression for chapter payloads.

A stored blob is one codec byte followed by the codec's payload, so a blob
can always be decoded without knowing which version of the library wrote
it. The only codec today is a Zstandard frame carrying its content size and
a content checksum; truncation and corruption are detected on read.
"""

from __future__ import annotations

import zstandard as zstd

from ereader.errors import CompressionError

CODEC_ZSTD = 0x01

DEFAULT_LEVEL = 8


def compress(data: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    # ZstdCompressor is not thread-safe; scans compress from worker threads.
    compressor = zstd.ZstdCompressor(
        level=level, write_checksum=True, write_content_size=True
    )
    return bytes([CODEC_ZSTD]) + compressor.compress(data)


def decompress(blob: bytes) -> bytes:
    if not blob:
        raise CompressionError("empty payload")

    codec = blob[0]
    if codec != CODEC_ZSTD:
        raise CompressionError(f"unknown codec 0x{codec:02x}")

    payload = blob[1:]
    try:
        expected = zstd.frame_content_size(payload)
        data = zstd.ZstdDecompressor().decompress(payload)
    except zstd.ZstdError as e:
        raise CompressionError(f"corrupt zstd payload: {e}") from e
    if expected >= 0 and len(data) != expected:
        raise CompressionError(
            f"truncated zstd payload: {len(data)} of {expected} bytes"
        )
    return data


def decompress_text(blob: bytes) -> str:
    try:
        return decompress(blob).decode("utf-8")
    except UnicodeDecodeError as e:
        raise CompressionError(f"payload is not UTF-8: {e}") from e
