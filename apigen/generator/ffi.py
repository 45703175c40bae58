"""ctypes bridge generator.

The bridge mirrors every record as a ctypes.Structure whose pointer fields
are raw addresses paired with their count fields, so values can be handed to
native code expecting the declarations of the C header.
"""

from dataclasses import dataclass

from jinja2 import Environment, PackageLoader

from .compiler import CompiledApi
from .layout import PayloadKind, RecordKind, RecordLayout, embedding_order
from .python import DEFAULT_RUNTIME_IMPORT
from .types import Api, Field, FunctionSig, Protocol, Selection, TypeRef

env = Environment(
    loader=PackageLoader("apigen.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("ffi.py.j2")

CTYPES_MAP = {
    "bool": "ctypes.c_bool",
    "i8": "ctypes.c_int8",
    "i16": "ctypes.c_int16",
    "i32": "ctypes.c_int32",
    "i64": "ctypes.c_int64",
    "u8": "ctypes.c_uint8",
    "u16": "ctypes.c_uint16",
    "u32": "ctypes.c_uint32",
    "u64": "ctypes.c_uint64",
    "usize": "ctypes.c_size_t",
    "f32": "ctypes.c_float",
    "f64": "ctypes.c_double",
}

# Opaque handles; ctypes reads a null c_void_p back as None
OBJECT_CTYPE = "ctypes.c_void_p"


def native_name(name: str) -> str:
    return f"{name}FFI"


def _element_type(api: Api, ref: TypeRef) -> str:
    """ctypes type of one element of ref."""
    if ref.is_object:
        return OBJECT_CTYPE
    if ref.is_primitive:
        return CTYPES_MAP[ref.name]
    if ref.is_enum:
        return CTYPES_MAP[api.enum(ref).base.name]
    return native_name(ref.name)


@dataclass
class NativeRecord:
    """One ctypes.Structure and its fill/read helpers."""

    name: str
    native: str
    fields: list[str]
    fill_lines: list[str]
    read_checks: list[str]
    read_args: list[str]


class _NativeWriter:
    def __init__(self, api: Api, layout: RecordLayout, header: str | None = None) -> None:
        self.api = api
        self.layout = layout
        self.name = layout.name
        self.header = header
        self.is_command = layout.kind == RecordKind.COMMAND
        self.payloads = {p.field.name: p for p in layout.payloads}

    def fields(self) -> tuple[Field, ...]:
        if self.is_command:
            return self.api.command(self.name).fields
        return self.api.record(self.name).fields

    def element_type(self, ref: TypeRef) -> str:
        return _element_type(self.api, ref)

    def what(self, f: Field) -> str:
        return f"{self.name}.{f.name}"

    def native_fields(self) -> list[str]:
        result: list[str] = []
        if self.is_command:
            result.append(f'("hdr", {native_name(self.header or "")})')
        for f in self.fields():
            element = self.element_type(f.type)
            if f.is_pointer:
                result.append(f'("{f.name}", ctypes.POINTER({element}))')
            elif f.is_array:
                result.append(f'("{f.name}", {element} * {f.array_length})')
            else:
                result.append(f'("{f.name}", {element})')
        padding = self.layout.padding
        if self.is_command and self.layout.is_static and padding:
            ctype = "ctypes.c_uint32" if padding == 4 else f"ctypes.c_uint8 * {padding}"
            result.append(f'("padding", {ctype})')
        return result

    def fill_lines(self) -> list[str]:
        lines: list[str] = []
        if self.is_command:
            lines.append("native.hdr.proto = value.OPCODE")
            lines.append("native.hdr.size = value.encoded_size()")

        for f in self.fields():
            target = f"native.{f.name}"
            source = f"value.{f.name}"
            ref = f.type
            if f.is_pointer:
                payload = self.payloads[f.name]
                lines.append(f'check_count({source}, value.{f.count_field}, "{self.what(f)}")')
                if payload.kind == PayloadKind.BYTES:
                    lines.append(f"{target} = byte_array({source})")
                elif payload.kind == PayloadKind.PRIMITIVE:
                    element = self.element_type(ref)
                    lines.append(f"{target} = primitive_array({element}, {source})")
                else:
                    element = native_name(ref.name)
                    lines.append(
                        f"{target} = struct_array({element}, {source}, _fill_{ref.name})"
                    )
            elif f.is_array:
                lines.append(f'check_count({source}, {f.array_length}, "{self.what(f)}")')
                if ref.is_struct:
                    lines.append(f"for _i, _item in enumerate({source}):")
                    lines.append(f"    _fill_{ref.name}({target}[_i], _item)")
                else:
                    lines.append(f"{target}[:] = {source}")
            elif ref.is_struct:
                lines.append(f"_fill_{ref.name}({target}, {source})")
            else:
                lines.append(f"{target} = {source}")

        if not lines:
            lines.append("pass")
        return lines

    def read_checks(self) -> list[str]:
        lines: list[str] = []
        for f in self.fields():
            payload = self.payloads.get(f.name)
            if payload is not None and payload.kind in (PayloadKind.STRUCT, PayloadKind.EXTENSIBLE):
                lines.append(
                    f'check_pointer(native.{f.name}, native.{f.count_field}, "{self.what(f)}")'
                )
        return lines

    def read_args(self) -> list[str]:
        args: list[str] = []
        for f in self.fields():
            source = f"native.{f.name}"
            ref = f.type
            what = self.what(f)
            if f.is_pointer:
                payload = self.payloads[f.name]
                count = f"native.{f.count_field}"
                if payload.kind == PayloadKind.BYTES:
                    expr = f'read_bytes({source}, {count}, "{what}")'
                elif payload.kind == PayloadKind.PRIMITIVE:
                    expr = f'read_array({source}, {count}, "{what}")'
                    if ref.is_enum:
                        expr = f'[to_enum({ref.name}, _v, "{what}") for _v in {expr}]'
                else:
                    expr = f"[_read_{ref.name}({source}[_i]) for _i in range({count})]"
            elif f.is_array:
                if ref.is_struct:
                    expr = f"[_read_{ref.name}(_item) for _item in {source}]"
                elif ref.is_enum:
                    expr = f'[to_enum({ref.name}, _v, "{what}") for _v in {source}]'
                elif ref.is_object:
                    expr = f"[_v or 0 for _v in {source}]"
                else:
                    expr = f"list({source})"
            elif ref.is_struct:
                expr = f"_read_{ref.name}({source})"
            elif ref.is_enum:
                expr = f'to_enum({ref.name}, {source}, "{what}")'
            elif ref.is_object:
                expr = f"{source} or 0"
            else:
                expr = source
            args.append(f"{f.name}={expr}")
        return args

    def record(self) -> NativeRecord:
        return NativeRecord(
            name=self.name,
            native=native_name(self.name),
            fields=self.native_fields(),
            fill_lines=self.fill_lines(),
            read_checks=self.read_checks(),
            read_args=self.read_args(),
        )


def _restype(api: Api, fn: FunctionSig) -> str:
    if fn.returns is None:
        return "None"
    return _element_type(api, fn.returns)


def _argtypes(api: Api, fn: FunctionSig) -> str:
    result = []
    for p in fn.parameters:
        element = _element_type(api, p.type)
        result.append(f"ctypes.POINTER({element})" if p.pointer else element)
    return f"[{', '.join(result)}]"


def render_selection(
    compiled: CompiledApi,
    selection: Selection,
    includes: tuple[str, ...] | list[str] = (),
    runtime_import: str = DEFAULT_RUNTIME_IMPORT,
) -> str:
    """Render the ctypes bridge for a selection of entities."""
    api = compiled.api
    names = [record.name for record in selection.records]
    records = [
        _NativeWriter(api, compiled.layouts[name]).record()
        for name in embedding_order(api, names)
    ]

    protocols: list[tuple[Protocol, list[NativeRecord]]] = []
    for protocol in selection.protocols:
        commands = [
            _NativeWriter(api, compiled.layouts[c.name], protocol.header_struct_name).record()
            for c in protocol.commands
        ]
        protocols.append((protocol, commands))

    functions = [(fn.name, _restype(api, fn), _argtypes(api, fn)) for fn in selection.functions]

    return template.render(
        api=api,
        records=records,
        protocols=protocols,
        functions=functions,
        includes=includes,
        runtime_import=runtime_import,
        native_name=native_name,
    )


def render(
    compiled: CompiledApi,
    definitions: tuple[str, ...] | list[str] | None = None,
    includes: tuple[str, ...] | list[str] = (),
    runtime_import: str = DEFAULT_RUNTIME_IMPORT,
) -> str:
    """Render a ctypes bridge module; every definitions block by default.

    includes name the modules providing the codec classes, typically the
    codec module generated for the same definitions.
    """
    api = compiled.api
    selected = api.select(list(definitions) if definitions is not None else list(api.definitions))
    return render_selection(compiled, selected, includes, runtime_import)
