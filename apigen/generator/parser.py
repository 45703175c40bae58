"""Schema document parser using Lark.

The parser only produces an untyped document tree: names of types, counts
and constants are still plain strings. Resolution happens in the catalog
builder.
"""

import os
from dataclasses import dataclass, field
from typing import Any, TypeVar

from lark import Lark, Token
from lark.exceptions import UnexpectedInput, VisitError
from lark.visitors import Transformer, v_args

from .errors import SchemaSyntaxError
from .types import Location

_g_parser: Lark | None = None


@dataclass
class Ref:
    """A bare name used as a value (constant reference, keyword)."""

    name: str


@dataclass
class DeclOption:
    name: str
    value: Any
    location: Location | None = None


@dataclass
class DeclCopyright:
    options: list[DeclOption]


@dataclass
class DeclApi:
    name: str
    options: list[DeclOption]
    copyright: DeclCopyright | None
    location: Location | None = None


@dataclass
class DeclConstant:
    name: str
    type_name: str
    value: Any
    location: Location | None = None


@dataclass
class DeclEnumValue:
    name: str
    value: Any
    location: Location | None = None


@dataclass
class DeclEnum:
    name: str
    base: str
    values: list[DeclEnumValue]
    flags: bool = False
    location: Location | None = None


@dataclass
class DeclObject:
    name: str
    location: Location | None = None


@dataclass
class DeclField:
    """A field declaration.

    bracket is None for scalars, an int for `T[N]` and a name for `T[name]`;
    whether a name means a constant or a sibling count field is decided
    during resolution.
    """

    name: str
    type_name: str
    bracket: int | str | None = None
    location: Location | None = None


@dataclass
class DeclStruct:
    name: str
    fields: list[DeclField]
    extensible: bool = False
    location: Location | None = None


@dataclass
class DeclParam:
    name: str
    type_name: str
    pointer: bool = False
    location: Location | None = None


@dataclass
class DeclFunction:
    name: str
    params: list[DeclParam]
    returns: str | None = None
    location: Location | None = None


@dataclass
class DeclCommand:
    name: str
    direction: str
    fields: list[DeclField]
    opcode: int | None = None
    location: Location | None = None


@dataclass
class DeclProtocol:
    name: str
    options: list[DeclOption]
    commands: list[DeclCommand]
    location: Location | None = None


@dataclass
class DeclDefinitions:
    name: str
    items: list[
        DeclConstant | DeclEnum | DeclObject | DeclStruct | DeclFunction | DeclProtocol
    ]
    location: Location | None = None


@dataclass
class DeclGeneratedFile:
    options: list[DeclOption]
    instantiations: list[str]
    includes: list[str]
    location: Location | None = None


@dataclass
class Document:
    """Root of the untyped document tree."""

    api: DeclApi | None = None
    definitions: list[DeclDefinitions] = field(default_factory=list)
    generated_files: list[DeclGeneratedFile] = field(default_factory=list)


@dataclass
class _Constants:
    items: list[DeclConstant]


@dataclass
class _ArrayBracket:
    value: int | str


@dataclass
class _Direction:
    value: str


@dataclass
class _Instantiate:
    value: str


@dataclass
class _Include:
    value: str


@dataclass
class _Opcode:
    value: int


@dataclass
class _Params:
    items: list[DeclParam]


@dataclass
class _Pointer:
    pass


@dataclass
class _Returns:
    value: str


@dataclass
class _Value:
    value: Any


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise RuntimeError(f"Found more than one {class_type}")

    if hasattr(filtered[0], "value"):
        return filtered[0].value
    return filtered[0]


TMany = TypeVar("TMany")


def _find_many(args: list[Any], class_type: type[TMany]) -> list[TMany]:
    return _filter(args, class_type)


def _names(args: list[Any]) -> list[str]:
    return [str(v) for v in args if isinstance(v, Token) and v.type == "NAME"]


def _location(meta: Any) -> Location | None:
    if getattr(meta, "empty", True):
        return None
    return Location(line=meta.line, column=meta.column)


@v_args(meta=True)
class TreeTransformer(Transformer):
    """Transform parse tree into the untyped document tree."""

    def start(self, meta: Any, args: list[Any]) -> Document:
        apis = _find_many(args, DeclApi)
        if len(apis) > 1:
            raise SchemaSyntaxError("only one api block is allowed", apis[1].location)
        return Document(
            api=apis[0] if apis else None,
            definitions=_find_many(args, DeclDefinitions),
            generated_files=_find_many(args, DeclGeneratedFile),
        )

    def api(self, meta: Any, args: list[Any]) -> DeclApi:
        return DeclApi(
            name=_names(args)[0],
            options=_find_many(args, DeclOption),
            copyright=_find_one(args, DeclCopyright),
            location=_location(meta),
        )

    def copyright(self, meta: Any, args: list[Any]) -> DeclCopyright:
        return DeclCopyright(options=_find_many(args, DeclOption))

    def option(self, meta: Any, args: list[Any]) -> DeclOption:
        return DeclOption(
            name=str(args[0]), value=_find_one(args, _Value), location=_location(meta)
        )

    def int_value(self, meta: Any, args: list[Any]) -> _Value:
        return _Value(int(args[0]))

    def hex_value(self, meta: Any, args: list[Any]) -> _Value:
        return _Value(int(args[0], 16))

    def float_value(self, meta: Any, args: list[Any]) -> _Value:
        return _Value(float(args[0]))

    def string_value(self, meta: Any, args: list[Any]) -> _Value:
        return _Value(str(args[0])[1:-1])

    def name_value(self, meta: Any, args: list[Any]) -> _Value:
        return _Value(Ref(str(args[0])))

    def definitions(self, meta: Any, args: list[Any]) -> DeclDefinitions:
        items: list[Any] = []
        for arg in args[1:]:
            if isinstance(arg, _Constants):
                items.extend(arg.items)
            else:
                items.append(arg)
        return DeclDefinitions(name=str(args[0]), items=items, location=_location(meta))

    def constants(self, meta: Any, args: list[Any]) -> _Constants:
        return _Constants(items=_find_many(args, DeclConstant))

    def constant(self, meta: Any, args: list[Any]) -> DeclConstant:
        name, type_name = _names(args)[:2]
        return DeclConstant(
            name=name,
            type_name=type_name,
            value=_find_one(args, _Value),
            location=_location(meta),
        )

    def enum(self, meta: Any, args: list[Any]) -> DeclEnum:
        name, base = _names(args)[:2]
        return DeclEnum(
            name=name,
            base=base,
            values=_find_many(args, DeclEnumValue),
            location=_location(meta),
        )

    def flags(self, meta: Any, args: list[Any]) -> DeclEnum:
        decl = self.enum(meta, args)
        decl.flags = True
        return decl

    def enum_value(self, meta: Any, args: list[Any]) -> DeclEnumValue:
        return DeclEnumValue(
            name=str(args[0]), value=_find_one(args, _Value), location=_location(meta)
        )

    def object(self, meta: Any, args: list[Any]) -> DeclObject:
        return DeclObject(name=str(args[0]), location=_location(meta))

    def struct(self, meta: Any, args: list[Any]) -> DeclStruct:
        return DeclStruct(
            name=str(args[0]),
            fields=_find_many(args, DeclField),
            location=_location(meta),
        )

    def extensible_struct(self, meta: Any, args: list[Any]) -> DeclStruct:
        decl = self.struct(meta, args)
        decl.extensible = True
        return decl

    def member(self, meta: Any, args: list[Any]) -> DeclField:
        name, type_name = _names(args)[:2]
        return DeclField(
            name=name,
            type_name=type_name,
            bracket=_find_one(args, _ArrayBracket),
            location=_location(meta),
        )

    def array_length(self, meta: Any, args: list[Any]) -> _ArrayBracket:
        return _ArrayBracket(int(args[0]))

    def array_ref(self, meta: Any, args: list[Any]) -> _ArrayBracket:
        return _ArrayBracket(str(args[0]))

    def function(self, meta: Any, args: list[Any]) -> DeclFunction:
        params = _find_one(args, _Params)
        return DeclFunction(
            name=str(args[0]),
            params=params.items if params else [],
            returns=_find_one(args, _Returns),
            location=_location(meta),
        )

    def params(self, meta: Any, args: list[Any]) -> _Params:
        return _Params(items=_find_many(args, DeclParam))

    def param(self, meta: Any, args: list[Any]) -> DeclParam:
        name, type_name = _names(args)[:2]
        return DeclParam(
            name=name,
            type_name=type_name,
            pointer=_find_one(args, _Pointer) is not None,
            location=_location(meta),
        )

    def pointer(self, meta: Any, args: list[Any]) -> _Pointer:
        return _Pointer()

    def returns(self, meta: Any, args: list[Any]) -> _Returns:
        return _Returns(str(args[0]))

    def protocol(self, meta: Any, args: list[Any]) -> DeclProtocol:
        return DeclProtocol(
            name=str(args[0]),
            options=_find_many(args, DeclOption),
            commands=_find_many(args, DeclCommand),
            location=_location(meta),
        )

    def command(self, meta: Any, args: list[Any]) -> DeclCommand:
        return DeclCommand(
            name=_names(args)[0],
            direction=_find_one(args, _Direction),
            opcode=_find_one(args, _Opcode),
            fields=_find_many(args, DeclField),
            location=_location(meta),
        )

    def direction(self, meta: Any, args: list[Any]) -> _Direction:
        return _Direction(str(args[0]))

    def opcode(self, meta: Any, args: list[Any]) -> _Opcode:
        token = args[0]
        return _Opcode(int(token, 16) if token.type == "HEX" else int(token))

    def generated_file(self, meta: Any, args: list[Any]) -> DeclGeneratedFile:
        return DeclGeneratedFile(
            options=_find_many(args, DeclOption),
            instantiations=[i.value for i in _find_many(args, _Instantiate)],
            includes=[i.value for i in _find_many(args, _Include)],
            location=_location(meta),
        )

    def instantiate(self, meta: Any, args: list[Any]) -> _Instantiate:
        return _Instantiate(str(args[0]))

    def include(self, meta: Any, args: list[Any]) -> _Include:
        return _Include(str(args[0])[1:-1])


def parse(text: str) -> Document:
    """Parse a schema document into its untyped tree."""
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/schema.lark", encoding="utf-8") as f:
            grammar = f.read()

        _g_parser = Lark(grammar, parser="lalr", propagate_positions=True)

    try:
        tree = _g_parser.parse(text)
    except UnexpectedInput as err:
        location = Location(err.line, err.column) if err.line > 0 else None
        raise SchemaSyntaxError(str(err).strip().splitlines()[0], location) from err

    try:
        return TreeTransformer().transform(tree)
    except VisitError as err:
        raise err.orig_exc from err
