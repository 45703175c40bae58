"""ctypes helpers for generated native bridges."""

import ctypes
from collections.abc import Callable, Sequence
from typing import Any

from .serialization import BridgeError


def byte_array(data: Any) -> Any:
    """Native view of a u8 payload, or None when it is empty.

    Writable buffers are shared with the native side rather than copied;
    the returned array keeps the buffer alive while it is referenced.
    """
    size = len(data)
    if size == 0:
        return None
    array_type = ctypes.c_uint8 * size
    if isinstance(data, bytearray) or (isinstance(data, memoryview) and not data.readonly):
        return array_type.from_buffer(data)
    if isinstance(data, (bytes, memoryview)):
        return array_type.from_buffer_copy(data)
    return array_type(*data)


def primitive_array(ctype: Any, values: Sequence[Any]) -> Any:
    if not values:
        return None
    return (ctype * len(values))(*values)


def struct_array(ctype: Any, values: Sequence[Any], fill: Callable[[Any, Any], None]) -> Any:
    if not values:
        return None
    array = (ctype * len(values))()
    for native, value in zip(array, values):
        fill(native, value)
    return array


def check_pointer(pointer: Any, count: int, what: str) -> None:
    """Reject a NULL pointer paired with a non-zero count."""
    if count < 0:
        raise BridgeError(f"{what}: negative element count {count}")
    if count and not pointer:
        raise BridgeError(f"{what}: NULL pointer with {count} elements")


def read_bytes(pointer: Any, count: int, what: str) -> bytes:
    check_pointer(pointer, count, what)
    if count == 0:
        return b""
    return ctypes.string_at(pointer, count)


def read_array(pointer: Any, count: int, what: str) -> list[Any]:
    check_pointer(pointer, count, what)
    return [pointer[i] for i in range(count)]


def bind(lib: Any, functions: dict[str, tuple[Any, list[Any]]]) -> Any:
    """Set restype and argtypes of every named function of lib."""
    for name, (restype, argtypes) in functions.items():
        try:
            func = getattr(lib, name)
        except AttributeError as err:
            raise BridgeError(f"native library has no function '{name}'") from err
        func.restype = restype
        func.argtypes = argtypes
    return lib
