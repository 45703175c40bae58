"""Runtime support for code generated by apigen."""

from .serialization import (
    HEADER_SIZE,
    MESSAGE_ALIGNMENT,
    BridgeError,
    Command,
    FieldInfo,
    SerializationError,
    Struct,
    TruncatedInputError,
    UnknownOpcodeError,
    apigen_field,
    check_capacity,
    check_count,
    check_signed_count,
    pad_message,
    peek_opcode,
    read_header,
    require,
    to_enum,
    write_header,
)

__all__ = [
    "HEADER_SIZE",
    "MESSAGE_ALIGNMENT",
    "BridgeError",
    "Command",
    "FieldInfo",
    "SerializationError",
    "Struct",
    "TruncatedInputError",
    "UnknownOpcodeError",
    "apigen_field",
    "check_capacity",
    "check_count",
    "check_signed_count",
    "pad_message",
    "peek_opcode",
    "read_header",
    "require",
    "to_enum",
    "write_header",
]
