import math
import pytest

from OSC_Bridge.connections.codec import (
    TAG_FALSE, TAG_FLOAT, TAG_INT, TAG_NIL, TAG_STRING, TAG_TRUE,
    build_message, decode_args, encode_args, infer_type, parse_datagram,
)


class TestInferType:
    def test_integers(self):
        assert infer_type(0) == TAG_INT
        assert infer_type(-3) == TAG_INT

    def test_integral_float_travels_as_int(self):
        assert infer_type(2.0) == TAG_INT
        assert infer_type(-1.0) == TAG_INT

    def test_fractional_float(self):
        assert infer_type(0.85) == TAG_FLOAT

    def test_non_finite_floats_stay_floats(self):
        assert infer_type(math.inf) == TAG_FLOAT
        assert infer_type(math.nan) == TAG_FLOAT

    def test_bool_is_not_an_int(self):
        assert infer_type(True) == TAG_TRUE
        assert infer_type(False) == TAG_FALSE

    def test_none_and_strings(self):
        assert infer_type(None) == TAG_NIL
        assert infer_type("Bass") == TAG_STRING

    def test_unknown_types_fall_back_to_string(self):
        assert infer_type([1, 2]) == TAG_STRING


class TestEncodeArgs:
    def test_mixed(self):
        assert encode_args([1, 2.0, 0.5, "x", True, False, None]) == [
            ("i", 1), ("i", 2), ("f", 0.5), ("s", "x"),
            ("T", True), ("F", False), ("N", None),
        ]

    def test_integral_float_is_coerced(self):
        (tag, value), = encode_args([120.0])
        assert tag == "i"
        assert isinstance(value, int)

    def test_unknown_type_is_stringified(self):
        assert encode_args([("a", 1)]) == [("s", "('a', 1)")]

    def test_empty(self):
        assert encode_args([]) == []

    def test_decode_strips_tags(self):
        assert decode_args([("i", 1), ("s", "x")]) == [1, "x"]


class TestWireFormat:
    def test_message_round_trip(self):
        dgram = build_message("/live/track/set/volume", encode_args([3, 0.5, "Bass", True, None]))
        assert parse_datagram(dgram) == [("/live/track/set/volume", [3, 0.5, "Bass", True, None])]

    def test_empty_message(self):
        dgram = build_message("/live/test", [])
        assert parse_datagram(dgram) == [("/live/test", [])]

    def test_invalid_address(self):
        with pytest.raises(ValueError, match="Invalid OSC address"):
            build_message("live/test", [])

    def test_bad_tag(self):
        with pytest.raises(ValueError, match="Cannot encode"):
            build_message("/live/test", [("i", "not an int")])

    def test_garbage_datagram(self):
        with pytest.raises(ValueError, match="Malformed OSC datagram"):
            parse_datagram(b"\x00\x01garbage")
