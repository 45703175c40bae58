"""Serialization support for generated apigen codecs."""

import struct
from collections.abc import Sized
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Self, TypeVar

# Command header: opcode (u32) + total message size (u32), little endian
HEADER_SIZE = 8
MESSAGE_ALIGNMENT = 8

_HEADER = struct.Struct("<II")

Buffer = bytes | bytearray | memoryview


class SerializationError(RuntimeError):
    """Raised when a value cannot be encoded or decoded."""


class TruncatedInputError(SerializationError):
    """Raised when the input ends before the data it declares."""


class UnknownOpcodeError(SerializationError):
    """Raised when a message carries an opcode its protocol does not define."""

    def __init__(self, protocol: str, opcode: int) -> None:
        super().__init__(f"unknown {protocol} opcode {opcode}")
        self.protocol = protocol
        self.opcode = opcode


class BridgeError(RuntimeError):
    """Raised when a native structure cannot be converted."""


@dataclass(frozen=True)
class FieldInfo:
    """Metadata for a generated record field."""

    wire_type: str
    array_length: int | None = None  # fixed array of N elements
    count_field: str | None = None  # pointer field sized by this sibling


def apigen_field(
    type: str,
    *,
    array_length: int | None = None,
    count_field: str | None = None,
) -> Any:
    """Define a record field with wire metadata attached.

    Args:
        type: The schema type of one element (e.g. "u32", "Point").
        array_length: Element count of a fixed array.
        count_field: Name of the sibling field holding the element count
            of a pointer field.

    Returns:
        A dataclass field carrying an "apigen" metadata entry.
    """
    return field(metadata={"apigen": FieldInfo(type, array_length, count_field)})


class Struct:
    """Base class for generated records.

    Subclasses are @dataclass decorated and implement encoded_size(),
    encode_into() and unpack(); encode() and decode() are built on those.

    Example:
        @dataclass
        class Polygon(Struct):
            count: int = apigen_field("u32")
            points: list[Point] = apigen_field("Point", count_field="count")
    """

    def encoded_size(self) -> int:
        """Number of bytes encode() produces."""
        raise NotImplementedError("encoded_size() must be implemented by generated code")

    def encode_into(self, buf: bytearray | memoryview, offset: int = 0) -> int:
        """Write this record into buf at offset and return the end offset."""
        raise NotImplementedError("encode_into() must be implemented by generated code")

    def encode(self) -> bytearray:
        """Encode into a single freshly allocated buffer."""
        buf = bytearray(self.encoded_size())
        end = self.encode_into(buf, 0)
        if end != len(buf):
            raise SerializationError(
                f"{type(self).__name__}: wrote {end} bytes, expected {len(buf)}"
            )
        return buf

    @classmethod
    def unpack(cls, data: Buffer, offset: int = 0) -> tuple[Self, int]:
        """Decode a record from data at offset.

        Returns:
            Tuple of (instance, bytes_consumed). u8 payloads of the instance
            are memoryview slices of data.
        """
        raise NotImplementedError("unpack() must be implemented by generated code")

    @classmethod
    def decode(cls, data: Buffer) -> Self:
        """Decode a record from the start of data."""
        value, _ = cls.unpack(data, 0)
        return value


class Command(Struct):
    """Base class for generated protocol commands.

    Subclasses set OPCODE, PROTOCOL and DIRECTION class attributes.
    """

    OPCODE: int = -1
    PROTOCOL: str = ""
    DIRECTION: str = ""


TEnum = TypeVar("TEnum", bound=Enum)


def require(data: memoryview, offset: int, size: int, what: str) -> None:
    """Check that data holds size bytes at offset."""
    if size < 0 or offset + size > len(data):
        available = max(len(data) - offset, 0)
        raise TruncatedInputError(
            f"{what}: need {size} bytes at offset {offset}, {available} available"
        )


def check_count(values: Sized, expected: int, what: str) -> None:
    """Check that a fixed array or pointer field holds expected elements."""
    if len(values) != expected:
        raise SerializationError(f"{what}: expected {expected} elements, got {len(values)}")


def check_capacity(buf: bytearray | memoryview, offset: int, size: int, what: str) -> None:
    """Check that buf has room for size bytes at offset."""
    if offset < 0 or offset + size > len(buf):
        raise SerializationError(
            f"{what}: buffer of {len(buf)} bytes cannot hold {size} bytes at offset {offset}"
        )


def check_signed_count(count: int, what: str) -> None:
    """Reject a negative count decoded from a signed count field."""
    if count < 0:
        raise SerializationError(f"{what}: negative element count {count}")


def to_enum(enum_type: type[TEnum], value: int, what: str) -> TEnum:
    """Convert a decoded integer to an enum member."""
    try:
        return enum_type(value)
    except ValueError as err:
        raise SerializationError(
            f"{what}: {value} is not a valid {enum_type.__name__}"
        ) from err


def pad_message(size: int) -> int:
    """Round a command size up to the message alignment."""
    return (size + MESSAGE_ALIGNMENT - 1) // MESSAGE_ALIGNMENT * MESSAGE_ALIGNMENT


def write_header(buf: bytearray | memoryview, offset: int, opcode: int, size: int) -> None:
    _HEADER.pack_into(buf, offset, opcode, size)


def peek_opcode(data: memoryview, what: str) -> int:
    """Read the opcode of the command at the start of data."""
    require(data, 0, HEADER_SIZE, what)
    opcode, _ = _HEADER.unpack_from(data, 0)
    return opcode


def read_header(data: memoryview, offset: int, opcode: int, what: str) -> int:
    """Validate a command header and return the message size it declares."""
    require(data, offset, HEADER_SIZE, what)
    found, size = _HEADER.unpack_from(data, offset)
    if found != opcode:
        raise SerializationError(f"{what}: opcode {found} does not match {opcode}")
    if size < HEADER_SIZE:
        raise SerializationError(f"{what}: message size {size} is smaller than its header")
    require(data, offset, size, what)
    return size
