"""Intermediate representation produced by the catalog builder."""

from dataclasses import dataclass, field
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin

from .util import to_snake_case, to_upper_snake_case


@dataclass(frozen=True)
class Location(DataClassJsonMixin):
    """Position of a declaration in the schema document."""

    line: int
    column: int

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}"


class TypeKind(StrEnum):
    """What a type reference points at."""

    PRIMITIVE = auto()
    ENUM = auto()
    STRUCT = auto()
    EXTENSIBLE_STRUCT = auto()
    OBJECT = auto()


@dataclass(frozen=True)
class TypeRef(DataClassJsonMixin):
    """A resolved handle to exactly one catalog entry."""

    kind: TypeKind
    name: str

    @property
    def is_primitive(self) -> bool:
        return self.kind == TypeKind.PRIMITIVE

    @property
    def is_enum(self) -> bool:
        return self.kind == TypeKind.ENUM

    @property
    def is_struct(self) -> bool:
        return self.kind == TypeKind.STRUCT

    @property
    def is_extensible(self) -> bool:
        return self.kind == TypeKind.EXTENSIBLE_STRUCT

    @property
    def is_object(self) -> bool:
        return self.kind == TypeKind.OBJECT


@dataclass(frozen=True)
class Copyright(DataClassJsonMixin):
    """Copyright notice stamped into generated files."""

    spdx: str
    holder: str
    year: int


@dataclass(frozen=True)
class EnumValue(DataClassJsonMixin):
    """A single enum label."""

    name: str
    value: int


@dataclass(frozen=True)
class EnumType(DataClassJsonMixin):
    """An enum (or bit-flag set) backed by an integral primitive."""

    name: str
    base: TypeRef
    values: tuple[EnumValue, ...]
    flags: bool = False
    location: Location | None = None


@dataclass(frozen=True)
class ConstantDef(DataClassJsonMixin):
    """A named literal."""

    name: str
    type: TypeRef
    value: int | float
    location: Location | None = None


@dataclass(frozen=True)
class Field(DataClassJsonMixin):
    """A struct, extensible struct or command field.

    - array_length=N: fixed array of N elements (length_constant names the
      constant it came from, if any)
    - count_field=name: pointer field holding `name` elements
    - neither: scalar
    """

    name: str
    type: TypeRef
    array_length: int | None = None
    length_constant: str | None = None
    count_field: str | None = None
    location: Location | None = None

    @property
    def is_pointer(self) -> bool:
        return self.count_field is not None

    @property
    def is_array(self) -> bool:
        return self.array_length is not None


@dataclass(frozen=True)
class ObjectType(DataClassJsonMixin):
    """An opaque native handle, passed by value as a pointer."""

    name: str
    location: Location | None = None


@dataclass(frozen=True)
class PlainStruct(DataClassJsonMixin):
    """A statically sized struct."""

    name: str
    fields: tuple[Field, ...]
    location: Location | None = None


@dataclass(frozen=True)
class ExtensibleStruct(DataClassJsonMixin):
    """A struct whose pointer fields append variable-length payloads."""

    name: str
    fields: tuple[Field, ...]
    location: Location | None = None

    @property
    def pointer_fields(self) -> tuple[Field, ...]:
        return tuple(f for f in self.fields if f.is_pointer)


@dataclass(frozen=True)
class Parameter(DataClassJsonMixin):
    """A function parameter; pointer=True passes it by address."""

    name: str
    type: TypeRef
    pointer: bool = False


@dataclass(frozen=True)
class FunctionSig(DataClassJsonMixin):
    """A native-callable routine. returns=None means void."""

    name: str
    parameters: tuple[Parameter, ...]
    returns: TypeRef | None = None
    location: Location | None = None


class Direction(StrEnum):
    """Which way a command travels."""

    REQUEST = auto()
    RESPONSE = auto()
    EVENT = auto()


@dataclass(frozen=True)
class Command(DataClassJsonMixin):
    """A protocol message. opcode is the explicit opcode, if any."""

    name: str
    protocol: str
    direction: Direction
    fields: tuple[Field, ...]
    opcode: int | None = None
    location: Location | None = None

    @property
    def pointer_fields(self) -> tuple[Field, ...]:
        return tuple(f for f in self.fields if f.is_pointer)


@dataclass(frozen=True)
class Protocol(DataClassJsonMixin):
    """An ordered set of commands sharing one opcode namespace."""

    name: str
    commands: tuple[Command, ...]
    version: int | None = None
    location: Location | None = None

    @property
    def opcode_enum_name(self) -> str:
        return f"{self.name}Opcode"

    @property
    def header_struct_name(self) -> str:
        return f"{self.name}CommandHdr"

    @property
    def union_name(self) -> str:
        return f"{self.name}Command"

    @property
    def commands_name(self) -> str:
        return f"{to_upper_snake_case(self.name)}_COMMANDS"

    @property
    def decode_name(self) -> str:
        return f"decode_{to_snake_case(self.name)}"

    def opcode_define(self, command: str) -> str:
        """C macro holding the opcode of one command."""
        return f"{to_upper_snake_case(self.name)}_OPCODE_{to_upper_snake_case(command)}"


class ItemKind(StrEnum):
    """Kinds of entities a definitions block can hold."""

    CONSTANT = auto()
    ENUM = auto()
    STRUCT = auto()
    EXTENSIBLE_STRUCT = auto()
    FUNCTION = auto()
    PROTOCOL = auto()
    OBJECT = auto()


@dataclass(frozen=True)
class DefinitionItem(DataClassJsonMixin):
    """One named entity of a definitions block."""

    kind: ItemKind
    name: str


@dataclass(frozen=True)
class Definitions(DataClassJsonMixin):
    """A named grouping of entities."""

    name: str
    items: tuple[DefinitionItem, ...]
    location: Location | None = None


class OutputKind(StrEnum):
    """What a generated file contains."""

    CODEC = auto()
    HEADER = auto()
    FFI = auto()
    IR = auto()


@dataclass(frozen=True)
class GeneratedFileSpec(DataClassJsonMixin):
    """One emitted file: which definitions go in, and in what form."""

    out_path: str
    file_name: str
    kind: OutputKind
    definitions: tuple[str, ...]
    includes: tuple[str, ...] = ()
    runtime: str | None = None
    location: Location | None = None

    @property
    def path(self) -> str:
        if not self.out_path:
            return self.file_name
        return f"{self.out_path.rstrip('/')}/{self.file_name}"


@dataclass(frozen=True)
class Selection:
    """The entities of one or more definitions blocks, in document order."""

    constants: list[ConstantDef] = field(default_factory=list)
    enums: list[EnumType] = field(default_factory=list)
    objects: list[ObjectType] = field(default_factory=list)
    records: list[PlainStruct | ExtensibleStruct] = field(default_factory=list)
    functions: list[FunctionSig] = field(default_factory=list)
    protocols: list[Protocol] = field(default_factory=list)

    @property
    def commands(self) -> list[Command]:
        return [command for protocol in self.protocols for command in protocol.commands]


@dataclass(frozen=True)
class Api(DataClassJsonMixin):
    """The fully resolved catalog. Read-only once built."""

    name: str
    version: int | None
    copyright: Copyright | None
    constants: dict[str, ConstantDef]
    enums: dict[str, EnumType]
    structs: dict[str, PlainStruct]
    extensible_structs: dict[str, ExtensibleStruct]
    objects: dict[str, ObjectType]
    functions: dict[str, FunctionSig]
    protocols: dict[str, Protocol]
    definitions: dict[str, Definitions]
    generated_files: tuple[GeneratedFileSpec, ...]

    def enum(self, ref: TypeRef) -> EnumType:
        return self.enums[ref.name]

    def record(self, name: str) -> PlainStruct | ExtensibleStruct:
        """Look up a plain or extensible struct by name."""
        if name in self.structs:
            return self.structs[name]
        return self.extensible_structs[name]

    def command(self, name: str) -> Command:
        for protocol in self.protocols.values():
            for command in protocol.commands:
                if command.name == name:
                    return command
        raise KeyError(name)

    def commands(self) -> list[Command]:
        return [c for protocol in self.protocols.values() for c in protocol.commands]

    def select(self, names: tuple[str, ...] | list[str]) -> Selection:
        """Collect the entities of the named definitions blocks."""
        selection = Selection()
        seen: set[tuple[ItemKind, str]] = set()
        for def_name in names:
            for item in self.definitions[def_name].items:
                if (item.kind, item.name) in seen:
                    continue
                seen.add((item.kind, item.name))
                if item.kind == ItemKind.CONSTANT:
                    selection.constants.append(self.constants[item.name])
                elif item.kind == ItemKind.ENUM:
                    selection.enums.append(self.enums[item.name])
                elif item.kind == ItemKind.OBJECT:
                    selection.objects.append(self.objects[item.name])
                elif item.kind in (ItemKind.STRUCT, ItemKind.EXTENSIBLE_STRUCT):
                    selection.records.append(self.record(item.name))
                elif item.kind == ItemKind.FUNCTION:
                    selection.functions.append(self.functions[item.name])
                elif item.kind == ItemKind.PROTOCOL:
                    selection.protocols.append(self.protocols[item.name])
        return selection


PRIMITIVE_SIZES: dict[str, int] = {
    "bool": 1,
    "u8": 1,
    "i8": 1,
    "u16": 2,
    "i16": 2,
    "u32": 4,
    "i32": 4,
    "u64": 8,
    "i64": 8,
    "f32": 4,
    "f64": 8,
    "usize": 8,
}

PRIMITIVE_TYPES = frozenset(PRIMITIVE_SIZES)

INTEGRAL_TYPES = frozenset(["u8", "i8", "u16", "i16", "u32", "i32", "u64", "i64", "usize"])

SIGNED_TYPES = frozenset(["i8", "i16", "i32", "i64"])

FLOAT_TYPES = frozenset(["f32", "f64"])


def primitive_types() -> list[str]:
    """Return a list of primitive type names."""
    return list(PRIMITIVE_TYPES)


def is_primitive(name: str) -> bool:
    """Check if a type name is a primitive type."""
    return name in PRIMITIVE_TYPES


def is_integral(ref: TypeRef) -> bool:
    """Check if a reference names an integer primitive."""
    return ref.is_primitive and ref.name in INTEGRAL_TYPES


def integer_range(name: str) -> tuple[int, int]:
    """Inclusive value range of an integral primitive."""
    bits = PRIMITIVE_SIZES[name] * 8
    if name in SIGNED_TYPES:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1
