"""Python codec generator."""

from dataclasses import dataclass, field
from importlib import resources

from jinja2 import Environment, PackageLoader

from .compiler import CompiledApi
from .layout import (
    HEADER_SIZE,
    PayloadKind,
    PayloadSection,
    RecordKind,
    RecordLayout,
    Slot,
    SlotKind,
    embedding_order,
)
from .types import FLOAT_TYPES, SIGNED_TYPES, Api, Field, Protocol, Selection, TypeRef

DEFAULT_RUNTIME_IMPORT = "apigen_runtime"

RUNTIME_FILES = [
    "__init__.py",
    "serialization.py",
    "bridge.py",
]

env = Environment(
    loader=PackageLoader("apigen.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("python.py.j2")

# Map schema primitives to struct format characters
FORMAT_CHARS = {
    "bool": "?",
    "i8": "b",
    "u8": "B",
    "i16": "h",
    "u16": "H",
    "i32": "i",
    "u32": "I",
    "i64": "q",
    "u64": "Q",
    "usize": "Q",
    "f32": "f",
    "f64": "d",
}


def _python_type(ref: TypeRef) -> str:
    if ref.is_object:
        return "int"
    if not ref.is_primitive:
        return ref.name
    if ref.name == "bool":
        return "bool"
    if ref.name in FLOAT_TYPES:
        return "float"
    return "int"


def _annotation(f: Field) -> str:
    """Map a field to a Python type annotation."""
    if f.is_pointer and f.type.is_primitive and f.type.name == "u8":
        return "bytes | bytearray | memoryview"
    if f.is_pointer or f.is_array:
        return f"list[{_python_type(f.type)}]"
    return _python_type(f.type)


def _field_args(f: Field) -> str:
    """Arguments of apigen_field() for a field."""
    args = [f'"{f.type.name}"']
    if f.array_length is not None:
        args.append(f"array_length={f.array_length}")
    if f.count_field is not None:
        args.append(f'count_field="{f.count_field}"')
    return ", ".join(args)


def _at(base: str, offset: int) -> str:
    return base if offset == 0 else f"{base} + {offset}"


@dataclass
class _Batch:
    """Consecutive scalar primitives packed with one struct.Struct."""

    index: int
    slots: list[Slot]

    @property
    def start(self) -> int:
        return self.slots[0].offset

    @property
    def end(self) -> int:
        return self.slots[-1].end

    @property
    def format(self) -> str:
        parts = ["<"]
        cursor = self.start
        for slot in self.slots:
            if slot.offset > cursor:
                parts.append(f"{slot.offset - cursor}x")
            assert slot.primitive is not None
            parts.append(FORMAT_CHARS[slot.primitive])
            cursor = slot.end
        return "".join(parts)


def _group_slots(layout: RecordLayout) -> list[_Batch | Slot]:
    groups: list[_Batch | Slot] = []
    current: list[Slot] = []
    batches = 0

    for slot in layout.slots:
        if slot.kind == SlotKind.PRIMITIVE:
            current.append(slot)
            continue
        if current:
            groups.append(_Batch(batches, current))
            batches += 1
            current = []
        groups.append(slot)

    if current:
        groups.append(_Batch(batches, current))

    return groups


def _zero_fill(start: int, end: int) -> str:
    return f"buf[{_at('_base', start)}:_base + {end}] = bytes({end - start})"


@dataclass
class RecordCode:
    """Everything the template needs to emit one record class."""

    name: str
    base_class: str
    fields: list[tuple[str, str, str]]
    constants: list[str]
    size_lines: list[str]
    encode_lines: list[str]
    decode_lines: list[str]


class _RecordWriter:
    """Generate method bodies for one record layout."""

    def __init__(self, api: Api, layout: RecordLayout, opcode: int | None = None) -> None:
        self.api = api
        self.layout = layout
        self.opcode = opcode
        self.name = layout.name
        self.groups = _group_slots(layout)
        self.is_command = layout.kind == RecordKind.COMMAND

    def fields(self) -> tuple[Field, ...]:
        if self.is_command:
            return self.api.command(self.name).fields
        return self.api.record(self.name).fields

    def what(self, f: Field) -> str:
        return f"{self.name}.{f.name}"

    def constants(self) -> list[str]:
        layout = self.layout
        lines: list[str] = []
        if self.is_command:
            command = self.api.command(self.name)
            lines.append(f"OPCODE = {self.opcode}")
            lines.append(f'PROTOCOL = "{command.protocol}"')
            lines.append(f'DIRECTION = "{command.direction}"')
        if layout.is_static:
            lines.append(f"SIZE = {layout.min_size}")
        lines.append(f"MIN_SIZE = {layout.min_size}")
        for group in self.groups:
            if isinstance(group, _Batch):
                lines.append(f'_S{group.index} = _struct.Struct("{group.format}")')
        return lines

    # encoded_size()

    def size_lines(self) -> list[str]:
        layout = self.layout
        if layout.is_static:
            return ["return self.SIZE"]

        terms = [str(layout.header_size + layout.prefix_size)]
        for payload in layout.payloads:
            name = f"self.{payload.field.name}"
            if payload.kind == PayloadKind.BYTES:
                terms.append(f"len({name})")
            elif payload.element_size is not None:
                terms.append(f"len({name}) * {payload.element_size}")
            else:
                terms.append(f"sum(_item.encoded_size() for _item in {name})")
        expr = " + ".join(terms)
        if self.is_command:
            return [f"return pad_message({expr})"]
        return [f"return {expr}"]

    # encode_into()

    def encode_lines(self) -> list[str]:
        layout = self.layout
        lines = self._encode_checks()

        if self.is_command:
            lines.append("_size = self.encoded_size()")
            lines.append(f'check_capacity(buf, offset, _size, "{self.name}")')
            lines.append("_base = offset + HEADER_SIZE")
        else:
            size = str(layout.min_size) if layout.is_static else "self.encoded_size()"
            lines.append(f'check_capacity(buf, offset, {size}, "{self.name}")')
            lines.append("_base = offset")

        lines.extend(self._encode_fixed())

        if self.is_command:
            lines.append(f"_o = {_at('_base', layout.prefix_size)}")
            for payload in layout.payloads:
                lines.extend(self._encode_payload(payload))
            lines.append("buf[_o:offset + _size] = bytes(offset + _size - _o)")
            lines.append("write_header(buf, offset, self.OPCODE, _size)")
            lines.append("return offset + _size")
        elif layout.payloads:
            lines.append(f"_o = {_at('_base', layout.prefix_size)}")
            for payload in layout.payloads:
                lines.extend(self._encode_payload(payload))
            lines.append("return _o")
        else:
            lines.append(f"return offset + {layout.prefix_size}")
        return lines

    def _encode_checks(self) -> list[str]:
        lines: list[str] = []
        for f in self.fields():
            if f.is_array:
                lines.append(f'check_count(self.{f.name}, {f.array_length}, "{self.what(f)}")')
            elif f.is_pointer:
                lines.append(
                    f'check_count(self.{f.name}, self.{f.count_field}, "{self.what(f)}")'
                )
        return lines

    def _encode_fixed(self) -> list[str]:
        lines: list[str] = []
        cursor = 0
        for group in self.groups:
            start = group.start if isinstance(group, _Batch) else group.offset
            if start > cursor:
                lines.append(_zero_fill(cursor, start))
            lines.extend(self._encode_group(group))
            cursor = group.end
        if self.layout.prefix_size > cursor:
            lines.append(_zero_fill(cursor, self.layout.prefix_size))
        return lines

    def _encode_group(self, group: _Batch | Slot) -> list[str]:
        if isinstance(group, _Batch):
            args = ", ".join(f"self.{slot.field.name}" for slot in group.slots)
            return [f"self._S{group.index}.pack_into(buf, {_at('_base', group.start)}, {args})"]

        slot = group
        at = _at("_base", slot.offset)
        name = slot.field.name
        if slot.kind == SlotKind.PRIMITIVE_ARRAY:
            assert slot.primitive is not None
            fmt = f"<{slot.count}{FORMAT_CHARS[slot.primitive]}"
            return [f'_struct.pack_into("{fmt}", buf, {at}, *self.{name})']
        if slot.kind == SlotKind.STRUCT:
            return [f"self.{name}.encode_into(buf, {at})"]
        return [
            f"for _i, _item in enumerate(self.{name}):",
            f"    _item.encode_into(buf, {at} + _i * {slot.element_size})",
        ]

    def _encode_payload(self, payload: PayloadSection) -> list[str]:
        name = payload.field.name
        count = f"self.{payload.count_field}"
        if payload.kind == PayloadKind.BYTES:
            return [f"buf[_o:_o + {count}] = self.{name}", f"_o += {count}"]
        if payload.kind == PayloadKind.PRIMITIVE:
            assert payload.primitive is not None
            char = FORMAT_CHARS[payload.primitive]
            return [
                f'_struct.pack_into(f"<{{{count}}}{char}", buf, _o, *self.{name})',
                f"_o += {count} * {payload.element_size}",
            ]
        return [
            f"for _item in self.{name}:",
            "    _o = _item.encode_into(buf, _o)",
        ]

    # unpack()

    def decode_lines(self) -> list[str]:
        layout = self.layout
        lines = ["_data = memoryview(data)"]

        if self.is_command:
            lines.append(f'_size = read_header(_data, offset, cls.OPCODE, "{self.name}")')
            lines.append("_data = _data[:offset + _size]")
            lines.append("_base = offset + HEADER_SIZE")
        else:
            lines.append("_base = offset")

        if layout.prefix_size:
            lines.append(f'require(_data, _base, {layout.prefix_size}, "{self.name}")')

        for group in self.groups:
            lines.extend(self._decode_group(group))

        if layout.payloads:
            lines.append(f"_o = {_at('_base', layout.prefix_size)}")
            for payload in layout.payloads:
                lines.extend(self._decode_payload(payload))

        kwargs = ", ".join(f"{f.name}=f_{f.name}" for f in self.fields())
        if self.is_command:
            consumed = "_size"
        elif layout.payloads:
            consumed = "_o - offset"
        else:
            consumed = str(layout.prefix_size)
        lines.append(f"return cls({kwargs}), {consumed}")
        return lines

    def _decode_group(self, group: _Batch | Slot) -> list[str]:
        if isinstance(group, _Batch):
            names = ", ".join(f"f_{slot.field.name}" for slot in group.slots)
            if len(group.slots) == 1:
                names += ","
            lines = [
                f"{names} = cls._S{group.index}.unpack_from(_data, {_at('_base', group.start)})"
            ]
            for slot in group.slots:
                if slot.field.type.is_enum:
                    name = slot.field.name
                    lines.append(
                        f'f_{name} = to_enum({slot.element}, f_{name}, "{self.what(slot.field)}")'
                    )
            return lines

        slot = group
        at = _at("_base", slot.offset)
        name = slot.field.name
        if slot.kind == SlotKind.PRIMITIVE_ARRAY:
            assert slot.primitive is not None
            fmt = f"<{slot.count}{FORMAT_CHARS[slot.primitive]}"
            read = f'_struct.unpack_from("{fmt}", _data, {at})'
            if slot.field.type.is_enum:
                what = self.what(slot.field)
                return [f'f_{name} = [to_enum({slot.element}, _v, "{what}") for _v in {read}]']
            return [f"f_{name} = list({read})"]
        if slot.kind == SlotKind.STRUCT:
            return [f"f_{name}, _ = {slot.element}.unpack(_data, {at})"]
        return [
            f"f_{name} = [",
            f"    {slot.element}.unpack(_data, {at} + _i * {slot.element_size})[0]",
            f"    for _i in range({slot.count})",
            "]",
        ]

    def _decode_payload(self, payload: PayloadSection) -> list[str]:
        name = payload.field.name
        count = f"f_{payload.count_field}"
        what = self.what(payload.field)
        lines: list[str] = []

        count_type = next(f for f in self.fields() if f.name == payload.count_field).type
        if count_type.name in SIGNED_TYPES:
            lines.append(f'check_signed_count({count}, "{what}")')

        if payload.kind == PayloadKind.BYTES:
            lines.append(f'require(_data, _o, {count}, "{what}")')
            lines.append(f"f_{name} = _data[_o:_o + {count}]")
            lines.append(f"_o += {count}")
            return lines

        if payload.element_size is None:
            lines.append(f'require(_data, _o, {count} * {payload.element_min_size}, "{what}")')
            lines.append(f"f_{name} = []")
            lines.append(f"for _ in range({count}):")
            lines.append(f"    _item, _used = {payload.element}.unpack(_data, _o)")
            lines.append(f"    f_{name}.append(_item)")
            lines.append("    _o += _used")
            return lines

        size = payload.element_size
        lines.append(f'require(_data, _o, {count} * {size}, "{what}")')
        if payload.kind == PayloadKind.PRIMITIVE:
            assert payload.primitive is not None
            char = FORMAT_CHARS[payload.primitive]
            read = f'_struct.unpack_from(f"<{{{count}}}{char}", _data, _o)'
            if payload.field.type.is_enum:
                lines.append(
                    f'f_{name} = [to_enum({payload.element}, _v, "{what}") for _v in {read}]'
                )
            else:
                lines.append(f"f_{name} = list({read})")
        else:
            lines.append(
                f"f_{name} = [{payload.element}.unpack(_data, _o + _i * {size})[0]"
                f" for _i in range({count})]"
            )
        lines.append(f"_o += {count} * {size}")
        return lines

    def code(self) -> RecordCode:
        return RecordCode(
            name=self.name,
            base_class="Command" if self.is_command else "Struct",
            fields=[(f.name, _annotation(f), _field_args(f)) for f in self.fields()],
            constants=self.constants(),
            size_lines=self.size_lines(),
            encode_lines=self.encode_lines(),
            decode_lines=self.decode_lines(),
        )


@dataclass
class ProtocolCode:
    """Dispatch helpers emitted for one protocol."""

    protocol: Protocol
    enum_name: str
    union_name: str
    commands_name: str
    decode_name: str
    entries: list[tuple[str, int]] = field(default_factory=list)
    records: list[RecordCode] = field(default_factory=list)


def _protocol_code(compiled: CompiledApi, protocol: Protocol) -> ProtocolCode:
    api = compiled.api
    table = compiled.dispatch[protocol.name]
    code = ProtocolCode(
        protocol=protocol,
        enum_name=protocol.opcode_enum_name,
        union_name=protocol.union_name,
        commands_name=protocol.commands_name,
        decode_name=protocol.decode_name,
    )
    for entry in table.entries:
        code.entries.append((entry.command, entry.opcode))
        writer = _RecordWriter(api, compiled.layouts[entry.command], entry.opcode)
        code.records.append(writer.code())
    return code


def _constant_literal(value: int | float) -> str:
    return repr(value)


def render_selection(
    compiled: CompiledApi,
    selection: Selection,
    includes: tuple[str, ...] | list[str] = (),
    runtime_import: str = DEFAULT_RUNTIME_IMPORT,
) -> str:
    """Render the codec module for a selection of entities."""
    api = compiled.api
    names = [record.name for record in selection.records]
    records = [
        _RecordWriter(api, compiled.layouts[name]).code()
        for name in embedding_order(api, names)
    ]
    protocols = [_protocol_code(compiled, p) for p in selection.protocols]

    return template.render(
        api=api,
        constants=selection.constants,
        enums=selection.enums,
        records=records,
        protocols=protocols,
        includes=includes,
        constant_literal=_constant_literal,
        runtime_import=runtime_import,
        header_size=HEADER_SIZE,
    )


def render(
    compiled: CompiledApi,
    definitions: tuple[str, ...] | list[str] | None = None,
    includes: tuple[str, ...] | list[str] = (),
    runtime_import: str = DEFAULT_RUNTIME_IMPORT,
) -> str:
    """Render a Python codec module.

    definitions names the definitions blocks to include; by default every
    block of the API is rendered.
    """
    api = compiled.api
    selected = api.select(list(definitions) if definitions is not None else list(api.definitions))
    return render_selection(compiled, selected, includes, runtime_import)


def runtime() -> dict[str, str]:
    """Return the Python runtime files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in RUNTIME_FILES:
        content = resources.files("apigen.proto").joinpath(filename).read_text()
        result[filename] = content
    return result
