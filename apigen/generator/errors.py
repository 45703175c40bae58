"""Errors raised while compiling a schema."""

from .types import Location


class ApiGenError(RuntimeError):
    """Base class for every generation-time failure."""


class ValidationError(ApiGenError):
    """Raised when the schema is not well formed."""

    def __init__(self, message: str, location: Location | None = None) -> None:
        if location is not None:
            message = f"{location}: {message}"
        super().__init__(message)
        self.location = location


class SchemaSyntaxError(ValidationError):
    """Raised when the schema document cannot be parsed."""


class DuplicateNameError(ValidationError):
    """Raised when a name is declared twice within one namespace."""

    def __init__(self, kind: str, name: str, location: Location | None = None) -> None:
        super().__init__(f"duplicate {kind} name '{name}'", location)
        self.kind = kind
        self.name = name


class UnresolvedReferenceError(ValidationError):
    """Raised when a referenced name is not declared."""

    def __init__(self, name: str, context: str, location: Location | None = None) -> None:
        super().__init__(f"unresolved reference '{name}' in {context}", location)
        self.name = name
        self.context = context


class InvalidNameError(ValidationError):
    """Raised for identifiers generated code cannot use."""


class InvalidEnumError(ValidationError):
    """Raised for duplicate or out-of-range enum values."""


class InvalidConstantError(ValidationError):
    """Raised when a constant's value does not match its type."""


class InvalidArrayLengthError(ValidationError):
    """Raised when a fixed array length is not a positive integer."""


class InvalidPlainStructError(ValidationError):
    """Raised when a plain struct carries pointer-bearing data."""


class InvalidPointerFieldError(ValidationError):
    """Raised when a pointer field's count field is missing or unusable."""


class InvalidExtensibleStructError(ValidationError):
    """Raised when an extensible struct is used where a fixed size is required."""


class InvalidObjectUseError(ValidationError):
    """Raised when an opaque object type is used outside native declarations."""


class InvalidOpcodeError(ValidationError):
    """Raised when an explicit opcode does not fit the command header."""


class DuplicateOpcodeError(ValidationError):
    """Raised when two commands of one protocol share an opcode."""

    def __init__(self, protocol: str, opcode: int, commands: tuple[str, str]) -> None:
        first, second = commands
        super().__init__(
            f"protocol '{protocol}': commands '{first}' and '{second}' share opcode {opcode}"
        )
        self.protocol = protocol
        self.opcode = opcode
        self.commands = commands


class LayoutError(ApiGenError):
    """Raised when a layout cannot be computed."""


class ElementSizeUnknownError(LayoutError):
    """Raised when the size of a type cannot be determined.

    Validation should make this unreachable; seeing it means a schema slipped
    past the catalog checks.
    """

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"internal error: size of '{name}' is unknown ({reason})")
        self.name = name
