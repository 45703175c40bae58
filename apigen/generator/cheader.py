"""C header generator."""

from jinja2 import Environment, PackageLoader

from .compiler import CompiledApi
from .layout import embedding_order
from .types import (
    ConstantDef,
    EnumType,
    Field,
    FunctionSig,
    Parameter,
    Selection,
    TypeRef,
    integer_range,
)

env = Environment(
    loader=PackageLoader("apigen.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("header.h.j2")

PRIMITIVE_TYPE_MAP = {
    "bool": "bool",
    "i8": "int8_t",
    "i16": "int16_t",
    "i32": "int32_t",
    "i64": "int64_t",
    "u8": "uint8_t",
    "u16": "uint16_t",
    "u32": "uint32_t",
    "u64": "uint64_t",
    "usize": "size_t",
    "f32": "float",
    "f64": "double",
}

SYSTEM_INCLUDES = ["stdbool.h", "stddef.h", "stdint.h"]


def _map_type(ref: TypeRef) -> str:
    if ref.is_primitive:
        return PRIMITIVE_TYPE_MAP[ref.name]
    return ref.name


def _literal(value: int | float, type_name: str) -> str:
    """C literal for a value of the given primitive type."""
    if isinstance(value, float):
        text = repr(value)
        return f"{text}f" if type_name == "f32" else text

    if type_name in ("u64", "usize"):
        text = f"{value}ull"
    elif type_name == "i64":
        text = f"{value}ll"
    elif integer_range(type_name)[0] == 0:
        text = f"{value}u"
    else:
        text = str(value)
    return f"({text})" if value < 0 else text


def _constant(c: ConstantDef) -> str:
    return f"#define {c.name} {_literal(c.value, c.type.name)}"


def _enum_values(enum: EnumType) -> list[str]:
    return [
        f"#define {enum.name}_{v.name} (({enum.name}){_literal(v.value, enum.base.name)})"
        for v in enum.values
    ]


def _member(f: Field) -> str:
    ctype = _map_type(f.type)
    if f.is_pointer:
        return f"{ctype}* {f.name};"
    if f.is_array:
        length = f.length_constant or str(f.array_length)
        return f"{ctype} {f.name}[{length}];"
    return f"{ctype} {f.name};"


def _padding(size: int) -> str:
    if size == 4:
        return "uint32_t padding;"
    return f"uint8_t padding[{size}];"


def _parameter(p: Parameter) -> str:
    pointer = "*" if p.pointer else ""
    return f"{_map_type(p.type)}{pointer} {p.name}"


def _prototype(fn: FunctionSig) -> str:
    returns = _map_type(fn.returns) if fn.returns is not None else "void"
    params = ", ".join(_parameter(p) for p in fn.parameters) or "void"
    return f"{returns} {fn.name}({params});"


def _include_guard(file_name: str) -> str:
    stem = "".join(ch if ch.isalnum() else "_" for ch in file_name)
    return f"{stem.upper()}_"


def render_selection(
    compiled: CompiledApi,
    selection: Selection,
    file_name: str,
    includes: tuple[str, ...] | list[str] = (),
) -> str:
    """Render C declarations for a selection of entities."""
    api = compiled.api
    names = [record.name for record in selection.records]
    records = [api.record(name) for name in embedding_order(api, names)]

    return template.render(
        api=api,
        guard=_include_guard(file_name),
        system_includes=SYSTEM_INCLUDES,
        includes=includes,
        constants=selection.constants,
        enums=selection.enums,
        objects=selection.objects,
        records=records,
        protocols=selection.protocols,
        functions=selection.functions,
        layouts=compiled.layouts,
        dispatch=compiled.dispatch,
        map_type=_map_type,
        constant=_constant,
        enum_values=_enum_values,
        member=_member,
        padding=_padding,
        prototype=_prototype,
    )


def render(
    compiled: CompiledApi,
    file_name: str,
    definitions: tuple[str, ...] | list[str] | None = None,
    includes: tuple[str, ...] | list[str] = (),
) -> str:
    """Render a C header; every definitions block by default."""
    api = compiled.api
    selected = api.select(list(definitions) if definitions is not None else list(api.definitions))
    return render_selection(compiled, selected, file_name, includes)
