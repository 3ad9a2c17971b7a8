"""Typed-argument OSC codec.

The wire format itself is python-osc's job; this module only decides which
type tag a plain Python value travels under and flattens decoded packets
back into ``(address, [values])`` pairs.
"""

import math
from typing import Any, List, Sequence, Tuple

from pythonosc.osc_message_builder import BuildError, OscMessageBuilder
from pythonosc.osc_packet import OscPacket, ParseError

TAG_INT = OscMessageBuilder.ARG_TYPE_INT
TAG_FLOAT = OscMessageBuilder.ARG_TYPE_FLOAT
TAG_STRING = OscMessageBuilder.ARG_TYPE_STRING
TAG_TRUE = OscMessageBuilder.ARG_TYPE_TRUE
TAG_FALSE = OscMessageBuilder.ARG_TYPE_FALSE
TAG_NIL = OscMessageBuilder.ARG_TYPE_NIL

TypedArg = Tuple[str, Any]


def infer_type(value: Any) -> str:
    """Pick the OSC type tag for a plain value."""
    if value is None:
        return TAG_NIL
    # bool before numbers: True is an int
    if isinstance(value, bool):
        return TAG_TRUE if value else TAG_FALSE
    if isinstance(value, int):
        return TAG_INT
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return TAG_INT
        return TAG_FLOAT
    return TAG_STRING


def encode_args(values: Sequence[Any]) -> List[TypedArg]:
    typed = []
    for value in values:
        tag = infer_type(value)
        if tag == TAG_INT:
            value = int(value)
        elif tag == TAG_STRING and not isinstance(value, str):
            value = str(value)
        typed.append((tag, value))
    return typed


def decode_args(typed_args: Sequence[TypedArg]) -> List[Any]:
    return [value for _tag, value in typed_args]


def build_message(address: str, typed_args: Sequence[TypedArg]) -> bytes:
    """Serialize one message. Raises ValueError on malformed input."""
    if not isinstance(address, str) or not address.startswith("/"):
        raise ValueError(f"Invalid OSC address: {address!r}")
    builder = OscMessageBuilder(address=address)
    try:
        for tag, value in typed_args:
            builder.add_arg(value, tag)
        return builder.build().dgram
    except BuildError as e:
        raise ValueError(f"Cannot encode OSC message {address}: {e}") from e


def parse_datagram(dgram: bytes) -> List[Tuple[str, List[Any]]]:
    """Decode a datagram (message or bundle) into ``(address, values)`` pairs."""
    try:
        packet = OscPacket(dgram)
    except ParseError as e:
        raise ValueError(f"Malformed OSC datagram ({len(dgram)} bytes): {e}") from e
    return [(timed.message.address, list(timed.message.params)) for timed in packet.messages]
