"""
Tests for the binary vector codec and vector helpers.
"""
import struct

import numpy as np
import pytest

from clustered_index.core.errors import DimensionMismatch, NonFiniteVector, NotUnitNorm, SizeMismatch
from clustered_index.indexing import codec
from clustered_index.indexing.vectors import as_embedding, check_unit_vector, normalize


class TestCodec:
    """Encode/decode of headerless little-endian float32 buffers."""

    def test_round_trip(self):
        """Test decode(encode(v)) reproduces the vectors exactly."""
        vectors = np.array([[0.6, 0.8, 0.0], [0.0, -1.0, 0.0]], dtype=np.float32)
        out = codec.decode(codec.encode(vectors), 2, 3)
        assert out.shape == (2, 3)
        assert out.dtype == np.float32
        np.testing.assert_array_equal(out, vectors)

    def test_layout_is_little_endian_row_major(self):
        """Test vector i starts at byte i * dims * 4 and floats are <f4."""
        buf = codec.encode([[1.0, 2.0], [3.0, 4.0]])
        assert len(buf) == 16
        assert struct.unpack("<4f", buf) == (1.0, 2.0, 3.0, 4.0)

    def test_decoded_matrix_is_read_only(self):
        """Test decoded vectors cannot be mutated."""
        out = codec.decode(codec.encode([[1.0, 0.0]]), 1, 2)
        with pytest.raises(ValueError):
            out[0, 0] = 5.0

    def test_truncated_buffer_raises_size_mismatch(self):
        """Test a short buffer is rejected with the expected byte count."""
        buf = codec.encode([[1.0, 0.0], [0.0, 1.0]])[:-4]
        with pytest.raises(SizeMismatch) as exc:
            codec.decode(buf, 2, 2)
        assert exc.value.actual_bytes == 12
        assert exc.value.expected_bytes == 16

    def test_oversized_buffer_raises_size_mismatch(self):
        """Test trailing bytes are not silently ignored."""
        buf = codec.encode([[1.0, 0.0]]) + b"\x00\x00\x00\x00"
        with pytest.raises(SizeMismatch):
            codec.decode(buf, 1, 2)

    def test_empty(self):
        """Test an empty cluster encodes to zero bytes and decodes to shape (0, d)."""
        assert codec.encode(np.zeros((0, 4), dtype=np.float32)) == b""
        out = codec.decode(b"", 0, 4)
        assert out.shape == (0, 4)

    def test_decode_complete_rows_drops_partial_tail(self):
        """Test the validator helper keeps whole vectors of a mis-sized file."""
        buf = codec.encode([[1.0, 0.0], [0.0, 1.0]])[:-2]
        out = codec.decode_complete_rows(buf, 2)
        assert out.shape == (1, 2)
        np.testing.assert_array_equal(out[0], [1.0, 0.0])


class TestVectors:
    """Tests for embedding vector helpers."""

    def test_as_embedding_checks_dimensions(self):
        """Test a wrong-length vector raises DimensionMismatch."""
        with pytest.raises(DimensionMismatch) as exc:
            as_embedding([1.0, 0.0, 0.0], 2)
        assert str(exc.value) == "query dim 3 != index dim 2"

    def test_normalize(self):
        """Test normalize produces a unit vector and leaves zero alone."""
        v = normalize([3.0, 4.0])
        assert np.allclose(v, [0.6, 0.8])
        check_unit_vector(v, "normalized")
        assert not normalize([0.0, 0.0]).any()

    def test_check_unit_vector(self):
        """Test NaN and non-unit vectors are rejected."""
        check_unit_vector(np.array([0.6, 0.8], dtype=np.float32), "ok")
        with pytest.raises(NonFiniteVector) as exc:
            check_unit_vector(np.array([1.0, np.nan]), "v")
        assert exc.value.position == 1
        with pytest.raises(NotUnitNorm):
            check_unit_vector(np.array([1.0, 1.0]), "v")
