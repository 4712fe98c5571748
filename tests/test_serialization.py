"""
Tests for the chunk codec.
"""

import numpy as np
import pytest

from distsort.utils.errors import SerializationError
from distsort.utils.serialization import (
    BODY_HEADER,
    FLAG_COMPRESSED,
    FLAG_PLAIN,
    INT32_MAX,
    INT32_MIN,
    deserialize_chunk,
    serialize_chunk,
)


class TestSerializeChunk:
    """Test encoding chunks."""

    def test_roundtrip_edge_values(self):
        """INT_MIN, INT_MAX, zero, negatives and repeats survive unchanged."""
        values = [INT32_MAX, 0, INT32_MIN, -1, 7, 7, 7, INT32_MIN, 42, -42]
        request_id, decoded = deserialize_chunk(serialize_chunk(values, request_id=9))

        assert request_id == 9
        assert decoded == values
        assert all(type(v) is int for v in decoded)

    def test_empty_chunk(self):
        """An empty chunk encodes to just the header."""
        payload = serialize_chunk([], request_id=3)

        assert payload[0:1] == FLAG_PLAIN
        assert len(payload) == 1 + BODY_HEADER.size
        assert deserialize_chunk(payload) == (3, [])

    def test_numpy_input(self):
        """Integer numpy arrays are accepted."""
        values = np.array([5, -3, 8], dtype=np.int64)
        assert deserialize_chunk(serialize_chunk(values))[1] == [5, -3, 8]

    def test_compression_applied_above_threshold(self):
        """Large bodies are compressed when requested."""
        values = list(range(1000))
        payload = serialize_chunk(values, compress=True, compress_threshold=64)

        assert payload[0:1] == FLAG_COMPRESSED
        assert deserialize_chunk(payload)[1] == values

    def test_compression_skipped_below_threshold(self):
        """Small bodies stay plain even with compression enabled."""
        payload = serialize_chunk([1, 2, 3], compress=True, compress_threshold=1024)
        assert payload[0:1] == FLAG_PLAIN

    @pytest.mark.parametrize("bad_value", [INT32_MAX + 1, INT32_MIN - 1, 2 ** 70])
    def test_out_of_range_rejected(self, bad_value):
        """Values outside signed 32-bit range cannot be encoded."""
        with pytest.raises(SerializationError):
            serialize_chunk([1, bad_value, 2])

    @pytest.mark.parametrize("bad_values", [[1.5, 2], ["a", "b"], [[1, 2], [3, 4]]])
    def test_non_integers_rejected(self, bad_values):
        """Only flat integer sequences are valid chunks."""
        with pytest.raises(SerializationError):
            serialize_chunk(bad_values)

    def test_invalid_request_id(self):
        """Request ids must fit in an unsigned 64-bit field."""
        with pytest.raises(SerializationError):
            serialize_chunk([1], request_id=-1)


class TestDeserializeChunk:
    """Test decoding malformed payloads."""

    def test_empty_payload(self):
        with pytest.raises(SerializationError):
            deserialize_chunk(b"")

    def test_unknown_flag(self):
        payload = serialize_chunk([1, 2, 3])
        with pytest.raises(SerializationError, match="flag"):
            deserialize_chunk(b"X" + payload[1:])

    def test_truncated_header(self):
        with pytest.raises(SerializationError, match="Truncated"):
            deserialize_chunk(FLAG_PLAIN + b"\x00\x01")

    def test_length_mismatch(self):
        """A body shorter than the announced count is rejected."""
        payload = serialize_chunk([1, 2, 3])
        with pytest.raises(SerializationError, match="mismatch"):
            deserialize_chunk(payload[:-1])

    def test_corrupt_compressed_body(self):
        with pytest.raises(SerializationError, match="compressed"):
            deserialize_chunk(FLAG_COMPRESSED + b"not zlib data")
