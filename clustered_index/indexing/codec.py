"""
Binary vector codec.

Embeddings files are a flat, headerless run of little-endian IEEE-754 float32
values, row-major: vector i starts at byte offset i * dimensions * 4.
"""

from __future__ import annotations
from typing import Sequence, Union
import numpy as np

from clustered_index.core.errors import SizeMismatch

FLOAT32_LE = np.dtype("<f4")
BYTES_PER_FLOAT = FLOAT32_LE.itemsize


def expected_byte_length(count: int, dimensions: int) -> int:
    return count * dimensions * BYTES_PER_FLOAT


def encode(vectors: Union[np.ndarray, Sequence[Sequence[float]]]) -> bytes:
    """Concatenate `vectors` into one row-major float32 buffer."""
    arr = np.asarray(vectors, dtype=FLOAT32_LE)
    if arr.size == 0:
        return b""
    if arr.ndim != 2:
        raise ValueError(f"expected a 2-D array of vectors, got shape {arr.shape}")
    return np.ascontiguousarray(arr).tobytes()


def decode(buffer: bytes, count: int, dimensions: int) -> np.ndarray:
    """
    Decode `buffer` into a read-only (count, dimensions) float32 matrix.
    Raises SizeMismatch unless len(buffer) == count * dimensions * 4.
    """
    if len(buffer) != expected_byte_length(count, dimensions):
        raise SizeMismatch(len(buffer), count, dimensions)
    if count * dimensions == 0:
        empty = np.zeros((count, dimensions), dtype=np.float32)
        empty.setflags(write=False)
        return empty
    flat = np.frombuffer(buffer, dtype=FLOAT32_LE, count=count * dimensions)
    # native-endian copy so downstream math doesn't pay for byte swapping on BE hosts
    matrix = flat.astype(np.float32, copy=not flat.dtype.isnative).reshape(count, dimensions)
    matrix.setflags(write=False)
    return matrix


def decode_complete_rows(buffer: bytes, dimensions: int) -> np.ndarray:
    """
    Decode as many whole vectors as `buffer` holds, ignoring a trailing partial row.
    Used by the validator to keep checking vectors in a mis-sized file.
    """
    row_bytes = dimensions * BYTES_PER_FLOAT
    rows = len(buffer) // row_bytes if row_bytes else 0
    return decode(buffer[: rows * row_bytes], rows, dimensions)
