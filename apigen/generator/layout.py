"""Byte layout of records on the wire.

Every fixed part is laid out the way a C compiler lays out the matching
struct: each field at its natural alignment, little endian, the total
rounded up to the record's alignment. Pointer fields take no room in the
fixed part; their elements follow it as payload sections, one per pointer
field, in declaration order and without padding.
"""

import logging
from dataclasses import dataclass
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin

from .errors import ElementSizeUnknownError
from .types import PRIMITIVE_SIZES, Api, Command, ExtensibleStruct, Field, PlainStruct, TypeRef

logger = logging.getLogger(__name__)

# Command header: opcode (u32) + total message size (u32)
HEADER_SIZE = 8
# Encoded commands are zero padded to a multiple of this
MESSAGE_ALIGNMENT = 8
# Wire primitive of an object handle
OBJECT_PRIMITIVE = "usize"


def align_up(value: int, alignment: int) -> int:
    """Round value up to a multiple of alignment."""
    return (value + alignment - 1) // alignment * alignment


class SlotKind(StrEnum):
    """How a fixed-part field is stored."""

    PRIMITIVE = auto()
    PRIMITIVE_ARRAY = auto()
    STRUCT = auto()
    STRUCT_ARRAY = auto()


@dataclass(frozen=True)
class Slot(DataClassJsonMixin):
    """A field placed in a record's fixed part.

    element is the declared type name; primitive is the wire primitive for
    primitive and enum slots (the enum's base for enums).
    """

    field: Field
    kind: SlotKind
    offset: int
    size: int
    align: int
    element: str
    element_size: int
    count: int = 1
    primitive: str | None = None

    @property
    def end(self) -> int:
        return self.offset + self.size


class PayloadKind(StrEnum):
    """What a pointer field's elements are."""

    BYTES = auto()  # u8, decoded zero-copy
    PRIMITIVE = auto()
    STRUCT = auto()
    EXTENSIBLE = auto()


@dataclass(frozen=True)
class PayloadSection(DataClassJsonMixin):
    """Elements of one pointer field, appended after the fixed part.

    element_size is None when elements are extensible structs with payloads
    of their own; element_min_size is then the size of their fixed part.
    """

    field: Field
    count_field: str
    kind: PayloadKind
    element: str
    element_size: int | None
    element_min_size: int
    primitive: str | None = None

    @property
    def is_static(self) -> bool:
        return self.element_size is not None


class RecordKind(StrEnum):
    """Which IR entity a layout belongs to."""

    PLAIN = auto()
    EXTENSIBLE = auto()
    COMMAND = auto()


@dataclass(frozen=True)
class RecordLayout(DataClassJsonMixin):
    """Planned layout of a plain struct, extensible struct or command.

    For commands, offsets are relative to the end of the command header.
    """

    name: str
    kind: RecordKind
    slots: tuple[Slot, ...]
    prefix_size: int
    align: int
    payloads: tuple[PayloadSection, ...] = ()

    @property
    def is_static(self) -> bool:
        return not self.payloads

    @property
    def header_size(self) -> int:
        return HEADER_SIZE if self.kind == RecordKind.COMMAND else 0

    @property
    def min_size(self) -> int:
        """Size with every pointer field empty."""
        if self.kind == RecordKind.COMMAND:
            return align_up(HEADER_SIZE + self.prefix_size, MESSAGE_ALIGNMENT)
        return self.prefix_size

    @property
    def padding(self) -> int:
        """Zero bytes appended after a command without payloads."""
        if self.kind != RecordKind.COMMAND:
            return 0
        return self.min_size - HEADER_SIZE - self.prefix_size

    def slot(self, name: str) -> Slot:
        for slot in self.slots:
            if slot.field.name == name:
                return slot
        raise KeyError(name)

    def payload_size(self, counts: dict[str, int]) -> int | None:
        """Bytes taken by the payloads for the given counts.

        Returns None when an element size is only known per element.
        """
        total = 0
        for payload in self.payloads:
            if payload.element_size is None:
                return None
            total += counts[payload.count_field] * payload.element_size
        return total


class LayoutPlanner:
    """Compute record layouts for a resolved API."""

    def __init__(self, api: Api) -> None:
        self.api = api
        self._plain: dict[str, RecordLayout] = {}
        self._in_progress: set[str] = set()

    def plan(self) -> dict[str, RecordLayout]:
        """Lay out every record, in document order."""
        layouts: dict[str, RecordLayout] = {}
        for name in self.api.structs:
            layouts[name] = self.plain_layout(name)
        for record in self.api.extensible_structs.values():
            layouts[record.name] = self.extensible_layout(record)
        for command in self.api.commands():
            layouts[command.name] = self.command_layout(command)
        logger.debug("planned %d record layouts", len(layouts))
        return layouts

    def plain_layout(self, name: str) -> RecordLayout:
        if name in self._plain:
            return self._plain[name]
        if name in self._in_progress:
            raise ElementSizeUnknownError(name, "struct embeds itself")
        if name not in self.api.structs:
            raise ElementSizeUnknownError(name, "not a plain struct")

        self._in_progress.add(name)
        struct: PlainStruct = self.api.structs[name]
        slots, size, align = self._lay_out_fixed(name, struct.fields)
        self._in_progress.discard(name)

        layout = RecordLayout(name, RecordKind.PLAIN, slots, size, align)
        self._plain[name] = layout
        return layout

    def extensible_layout(self, record: ExtensibleStruct) -> RecordLayout:
        slots, size, align = self._lay_out_fixed(record.name, record.fields)
        payloads = tuple(self._payload(record.name, f) for f in record.fields if f.is_pointer)
        return RecordLayout(record.name, RecordKind.EXTENSIBLE, slots, size, align, payloads)

    def command_layout(self, command: Command) -> RecordLayout:
        slots, size, align = self._lay_out_fixed(command.name, command.fields)
        payloads = tuple(self._payload(command.name, f) for f in command.fields if f.is_pointer)
        return RecordLayout(command.name, RecordKind.COMMAND, slots, size, align, payloads)

    def fixed_size(self, ref: TypeRef, owner: str) -> tuple[int, int, str | None]:
        """Size, alignment and wire primitive of one by-value element."""
        if ref.is_primitive:
            size = PRIMITIVE_SIZES[ref.name]
            return size, size, ref.name
        if ref.is_enum:
            base = self.api.enum(ref).base.name
            size = PRIMITIVE_SIZES[base]
            return size, size, base
        if ref.is_object:
            # Opaque handles travel as their pointer-sized value
            size = PRIMITIVE_SIZES[OBJECT_PRIMITIVE]
            return size, size, OBJECT_PRIMITIVE
        if ref.is_struct:
            layout = self.plain_layout(ref.name)
            return layout.prefix_size, layout.align, None
        raise ElementSizeUnknownError(
            ref.name, f"extensible struct used by value in '{owner}'"
        )

    def element_size(self, ref: TypeRef, owner: str) -> int | None:
        """Size of one element behind a pointer; None when it varies."""
        if ref.is_extensible:
            record = self.api.extensible_structs[ref.name]
            if record.pointer_fields:
                return None
            _, size, _ = self._lay_out_fixed(record.name, record.fields)
            return size
        size, _, _ = self.fixed_size(ref, owner)
        return size

    def _lay_out_fixed(
        self, owner: str, fields: tuple[Field, ...]
    ) -> tuple[tuple[Slot, ...], int, int]:
        slots: list[Slot] = []
        offset = 0
        max_align = 1
        for f in fields:
            if f.is_pointer:
                continue
            element_size, align, primitive = self.fixed_size(f.type, owner)
            count = f.array_length or 1
            if primitive is not None:
                kind = SlotKind.PRIMITIVE_ARRAY if f.is_array else SlotKind.PRIMITIVE
            else:
                kind = SlotKind.STRUCT_ARRAY if f.is_array else SlotKind.STRUCT

            offset = align_up(offset, align)
            slots.append(
                Slot(
                    field=f,
                    kind=kind,
                    offset=offset,
                    size=element_size * count,
                    align=align,
                    element=f.type.name,
                    element_size=element_size,
                    count=count,
                    primitive=primitive,
                )
            )
            offset += element_size * count
            max_align = max(max_align, align)

        return tuple(slots), align_up(offset, max_align), max_align

    def _payload(self, owner: str, f: Field) -> PayloadSection:
        assert f.count_field is not None
        ref = f.type

        if ref.is_extensible:
            record = self.api.extensible_structs[ref.name]
            _, prefix, _ = self._lay_out_fixed(record.name, record.fields)
            return PayloadSection(
                field=f,
                count_field=f.count_field,
                kind=PayloadKind.EXTENSIBLE,
                element=ref.name,
                element_size=None if record.pointer_fields else prefix,
                element_min_size=prefix,
            )

        size, _, primitive = self.fixed_size(ref, owner)
        if primitive is None:
            kind = PayloadKind.STRUCT
        elif ref.is_primitive and ref.name == "u8":
            kind = PayloadKind.BYTES
        else:
            kind = PayloadKind.PRIMITIVE
        return PayloadSection(
            field=f,
            count_field=f.count_field,
            kind=kind,
            element=ref.name,
            element_size=size,
            element_min_size=size,
            primitive=primitive,
        )


def plan_layouts(api: Api) -> dict[str, RecordLayout]:
    """Lay out every plain struct, extensible struct and command of api."""
    return LayoutPlanner(api).plan()


def embedding_order(api: Api, names: list[str]) -> list[str]:
    """Order records so every by-value dependency comes first.

    Only the given names are returned; dependencies outside the list are
    walked through but not emitted.
    """
    wanted = set(names)
    done: set[str] = set()
    order: list[str] = []

    def fields_of(name: str) -> tuple[Field, ...]:
        if name in api.structs or name in api.extensible_structs:
            return api.record(name).fields
        return api.command(name).fields

    def visit(name: str) -> None:
        if name in done:
            return
        done.add(name)
        for f in fields_of(name):
            if f.type.is_struct and not f.is_pointer:
                visit(f.type.name)
        if name in wanted:
            order.append(name)

    for name in names:
        visit(name)
    return order
