"""
Vector BLOB codec and content hashing.

Vectors are stored as contiguous little-endian IEEE-754 float32 values with
no header. Content hashes are cheap change detectors, not security digests.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


VECTOR_DTYPE = np.dtype("<f4")

_HASH_MASK = 0xFFFFFFFF
_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


def encode_vector(vector: np.ndarray | Sequence[float]) -> bytes:
    """Encode a float vector to its BLOB representation."""
    return np.ascontiguousarray(vector, dtype=VECTOR_DTYPE).tobytes()


def decode_vector(blob: bytes | bytearray | memoryview) -> np.ndarray:
    """Decode a BLOB into a float32 vector.

    The bytes are copied into a fresh buffer first: drivers may hand back
    views whose offset is not float-aligned.
    """
    raw = bytes(blob)
    if len(raw) % VECTOR_DTYPE.itemsize:
        raise ValueError(
            f"Vector blob length {len(raw)} is not a multiple of {VECTOR_DTYPE.itemsize}"
        )
    return np.frombuffer(raw, dtype=VECTOR_DTYPE).astype(np.float32, copy=True)


def _utf16_units(text: str) -> np.ndarray:
    encoded = text.encode("utf-16-le", errors="surrogatepass")
    return np.frombuffer(encoded, dtype="<u2").astype(np.uint32)


def _string_hash(units: np.ndarray) -> int:
    # h * 31 + c unrolled to sum(c[i] * 31 ** (n - 1 - i)); uint32 wraps mod 2**32.
    if units.size == 0:
        return 0
    steps = np.full(units.size, 31, dtype=np.uint32)
    steps[0] = 1
    weights = np.cumprod(steps, dtype=np.uint32)[::-1]
    return int(np.sum(units * weights, dtype=np.uint32))


def content_hash(text: str) -> str:
    """Return a 16-hex-digit digest of *text* built from two 32-bit passes.

    The first pass is the classic ``h * 31 + c`` string hash, the second is
    FNV-1a. Both run over UTF-16 code units so digests match those written
    by other clients of the same database.
    """
    units = _utf16_units(text)
    first = _string_hash(units)
    # FNV-1a is order dependent and stays a sequential loop.
    second = _FNV_OFFSET
    for unit in units.tolist():
        second = ((second ^ unit) * _FNV_PRIME) & _HASH_MASK
    return f"{first:08x}{second:08x}"
