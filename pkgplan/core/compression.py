"""
Compression utilities for pkgplan

Repositories publish their indexes zstd-compressed; older mirrors may still
serve gzip, xz or bzip2. The format is recognized from the leading magic
bytes and anything unrecognized is treated as plain text.
"""

import bz2
import gzip
import lzma
from typing import Callable, Dict, Tuple

import zstandard as zstd

# (magic prefix, format name), checked in order
MAGICS: Tuple[Tuple[bytes, str], ...] = (
    (b'\x28\xb5\x2f\xfd', 'zstd'),
    (b'\x1f\x8b', 'gzip'),
    (b'\xfd7zXZ\x00', 'xz'),
    (b'BZh', 'bzip2'),
)


def _zstd_decompress(data: bytes) -> bytes:
    # Frames written in streaming mode carry no content size, read them as a stream
    with zstd.ZstdDecompressor().stream_reader(data) as reader:
        return reader.read()


DECOMPRESSORS: Dict[str, Callable[[bytes], bytes]] = {
    'zstd': _zstd_decompress,
    'gzip': gzip.decompress,
    'xz': lzma.decompress,
    'bzip2': bz2.decompress,
}


def detect_format(data: bytes) -> str:
    """Return 'zstd', 'gzip', 'xz', 'bzip2' or 'plain' for the given data."""
    for magic, name in MAGICS:
        if data.startswith(magic):
            return name
    return 'plain'


def decompress_bytes(data: bytes) -> bytes:
    """Decompress data in whatever format it is in.

    Args:
        data: Raw, possibly compressed, bytes

    Returns:
        Decompressed bytes (data itself when it is plain)

    Raises:
        zstd.ZstdError, OSError, lzma.LZMAError: on corrupt data
    """
    decompressor = DECOMPRESSORS.get(detect_format(data))
    if decompressor is None:
        return data
    return decompressor(data)


def compress_bytes(data: bytes, level: int = 3) -> bytes:
    """Compress data with zstd at the given level."""
    return zstd.ZstdCompressor(level=level).compress(data)
