"""Unit tests for the Args binary codec."""

import pytest

from autosplit.errors import DecodeError, ValidationError
from autosplit.ledger.codec import U16_MAX, U64_MAX, ArgsReader, ArgsWriter


@pytest.mark.unit
class TestArgsWriter:
    """Tests for payload encoding."""

    def test_integers_are_little_endian(self):
        payload = ArgsWriter().add_u16(1).add_u32(2).add_u64(3).serialize()
        assert payload == (
            b"\x01\x00"
            + b"\x02\x00\x00\x00"
            + b"\x03\x00\x00\x00\x00\x00\x00\x00"
        )

    def test_bool_is_one_byte(self):
        assert ArgsWriter().add_bool(True).add_bool(False).serialize() == b"\x01\x00"

    def test_string_is_length_prefixed_utf8(self):
        payload = ArgsWriter().add_string("héllo").serialize()
        assert payload[:4] == (6).to_bytes(4, "little")
        assert payload[4:] == "héllo".encode("utf-8")

    def test_empty_string(self):
        assert ArgsWriter().add_string("").serialize() == b"\x00\x00\x00\x00"

    def test_string_array_prefix_is_total_byte_length(self):
        payload = ArgsWriter().add_string_array(["a", "bc"]).serialize()
        # (4 + 1) + (4 + 2) bytes of nested strings
        assert payload[:4] == (11).to_bytes(4, "little")
        assert len(payload) == 15

    def test_u64_array_prefix_is_byte_length(self):
        payload = ArgsWriter().add_u64_array([1, 2, 3]).serialize()
        assert payload[:4] == (24).to_bytes(4, "little")

    def test_out_of_range_rejected(self):
        with pytest.raises(DecodeError):
            ArgsWriter().add_u16(U16_MAX + 1)
        with pytest.raises(DecodeError):
            ArgsWriter().add_u64(-1)

    def test_bool_is_not_an_integer(self):
        with pytest.raises(DecodeError):
            ArgsWriter().add_u64(True)


@pytest.mark.unit
class TestArgsReader:
    """Tests for payload decoding."""

    def test_reads_in_field_order(self):
        payload = (
            ArgsWriter()
            .add_u64(U64_MAX)
            .add_string("ops")
            .add_bool(True)
            .add_u16(10000)
            .add_string_array(["x", "y"])
            .add_u64_array([7, 8])
            .serialize()
        )
        args = ArgsReader(payload)
        assert args.next_u64() == U64_MAX
        assert args.next_string() == "ops"
        assert args.next_bool() is True
        assert args.next_u16() == 10000
        assert args.next_string_array() == ["x", "y"]
        assert args.next_u64_array() == [7, 8]
        assert not args.has_more()
        args.expect_end()

    def test_missing_field_names_the_field(self):
        args = ArgsReader(b"\x01\x00")
        with pytest.raises(DecodeError, match="Missing team id"):
            args.next_u64("team id")

    def test_truncated_string(self):
        payload = ArgsWriter().add_string("truncated").serialize()[:-2]
        with pytest.raises(DecodeError):
            ArgsReader(payload).next_string("name")

    def test_invalid_boolean_byte(self):
        with pytest.raises(DecodeError):
            ArgsReader(b"\x02").next_bool()

    def test_invalid_utf8(self):
        payload = (2).to_bytes(4, "little") + b"\xff\xfe"
        with pytest.raises(DecodeError):
            ArgsReader(payload).next_string()

    def test_u64_array_length_must_be_multiple_of_eight(self):
        payload = (5).to_bytes(4, "little") + b"\x00" * 5
        with pytest.raises(DecodeError):
            ArgsReader(payload).next_u64_array()

    def test_trailing_bytes_rejected(self):
        args = ArgsReader(ArgsWriter().add_u16(1).add_bool(False).serialize())
        args.next_u16()
        with pytest.raises(DecodeError, match="Trailing"):
            args.expect_end("member")

    def test_decode_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            ArgsReader(b"").next_u32()
