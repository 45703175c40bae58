"""Type catalog: turns the untyped document tree into the resolved IR."""

import keyword
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import (
    DuplicateNameError,
    InvalidArrayLengthError,
    InvalidConstantError,
    InvalidEnumError,
    InvalidExtensibleStructError,
    InvalidNameError,
    InvalidObjectUseError,
    InvalidOpcodeError,
    InvalidPlainStructError,
    InvalidPointerFieldError,
    UnresolvedReferenceError,
    ValidationError,
)
from .parser import (
    DeclCommand,
    DeclConstant,
    DeclEnum,
    DeclField,
    DeclFunction,
    DeclObject,
    DeclOption,
    DeclProtocol,
    DeclStruct,
    Document,
    Ref,
)
from .types import (
    FLOAT_TYPES,
    INTEGRAL_TYPES,
    Api,
    Command,
    ConstantDef,
    Copyright,
    DefinitionItem,
    Definitions,
    Direction,
    EnumType,
    EnumValue,
    ExtensibleStruct,
    Field,
    FunctionSig,
    GeneratedFileSpec,
    ItemKind,
    Location,
    ObjectType,
    OutputKind,
    Parameter,
    PlainStruct,
    Protocol,
    TypeKind,
    TypeRef,
    integer_range,
    is_integral,
    is_primitive,
    primitive_types,
)

logger = logging.getLogger(__name__)

# Members every generated record class defines itself
RESERVED_FIELD_NAMES = frozenset(
    [
        "encode",
        "decode",
        "unpack",
        "encode_into",
        "encoded_size",
        "SIZE",
        "MIN_SIZE",
        "OPCODE",
        "PROTOCOL",
        "DIRECTION",
    ]
)

# Names generated Python modules import or define next to the schema's names
RESERVED_MODULE_NAMES = frozenset(
    [
        # codec modules
        "annotations",
        "dataclass",
        "IntEnum",
        "IntFlag",
        "HEADER_SIZE",
        "Command",
        "Struct",
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
        # ffi modules
        "ctypes",
        "Any",
        "BridgeError",
        "bind",
        "byte_array",
        "check_pointer",
        "primitive_array",
        "read_array",
        "read_bytes",
        "struct_array",
        "FUNCTIONS",
        "to_native",
        "from_native",
        "bind_functions",
    ]
)

# C keywords and the typedefs generated headers include
C_RESERVED_NAMES = frozenset(
    """
    auto break case char const continue default do double else enum extern
    float for goto if inline int long register restrict return short signed
    sizeof static struct switch typedef union unsigned void volatile while
    bool true false NULL size_t int8_t int16_t int32_t int64_t
    uint8_t uint16_t uint32_t uint64_t
    """.split()
)

# Namespace of every name a generated module or header defines at top level
MODULE = "top-level"

# Members of the native command struct
RESERVED_COMMAND_FIELDS = frozenset(["hdr", "padding"])

MAX_OPCODE = 0xFFFFFFFF


@dataclass
class SymbolTable:
    """Names declared so far, one namespace per kind."""

    namespaces: dict[str, dict[str, Location | None]] = field(default_factory=dict)

    def declare(self, kind: str, name: str, location: Location | None = None) -> None:
        names = self.namespaces.setdefault(kind, {})
        if name in names:
            raise DuplicateNameError(kind, name, location)
        names[name] = location

    def contains(self, kind: str, name: str) -> bool:
        return name in self.namespaces.get(kind, {})


def _check_identifier(name: str, what: str, location: Location | None) -> None:
    if keyword.iskeyword(name) or name in C_RESERVED_NAMES:
        raise InvalidNameError(f"{what} '{name}' is a reserved word", location)
    if name.startswith("_"):
        raise InvalidNameError(f"{what} '{name}' must not start with an underscore", location)


def _check_unique(kind: str, names: list[tuple[str, Location | None]]) -> None:
    seen: set[str] = set()
    for name, location in names:
        if name in seen:
            raise DuplicateNameError(kind, name, location)
        seen.add(name)


def _options(options: list[DeclOption], allowed: set[str], context: str) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for option in options:
        if option.name not in allowed:
            raise ValidationError(f"unknown option '{option.name}' in {context}", option.location)
        if option.name in result:
            raise DuplicateNameError("option", option.name, option.location)
        result[option.name] = option.value
    return result


def _int_option(value: Any, name: str, location: Location | None) -> int | None:
    if value is None:
        return None
    if not isinstance(value, int):
        raise ValidationError(f"option '{name}' must be an integer", location)
    return value


def _str_option(value: Any, name: str, location: Location | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, Ref):
        return value.name
    if not isinstance(value, str):
        raise ValidationError(f"option '{name}' must be a string", location)
    return value


class CatalogBuilder:
    """Build the IR in three passes: register, resolve, check.

    The symbol table is passed in explicitly so callers can share or inspect
    it; nothing is kept at module level.
    """

    def __init__(self, document: Document, symbols: SymbolTable) -> None:
        self.document = document
        self.symbols = symbols

        self._constants: dict[str, DeclConstant] = {}
        self._enums: dict[str, DeclEnum] = {}
        self._objects: dict[str, DeclObject] = {}
        self._structs: dict[str, DeclStruct] = {}
        self._extensible: dict[str, DeclStruct] = {}
        self._functions: dict[str, DeclFunction] = {}
        self._protocols: dict[str, DeclProtocol] = {}
        self._definitions: dict[str, list[DefinitionItem]] = {}

        self._constant_values: dict[str, int | float] = {}
        self.api: Api | None = None

    def build(self) -> Api:
        self.register()
        api = self.resolve_references()
        self.check_struct_well_formedness(api)
        self.api = api
        return api

    # Pass 1

    def register(self) -> None:
        """Declare every named entity, rejecting duplicates."""
        for primitive in sorted(primitive_types()):
            self.symbols.declare("type", primitive)

        for block in self.document.definitions:
            self.symbols.declare("definitions", block.name, block.location)
            items: list[DefinitionItem] = []
            for decl in block.items:
                items.append(self._register_item(decl))
            self._definitions[block.name] = items

        for spec in self.document.generated_files:
            opts = {o.name: o.value for o in spec.options}
            out_path = str(opts.get("out_path") or "").rstrip("/")
            file_name = str(opts.get("file_name"))
            path = f"{out_path}/{file_name}" if out_path else file_name
            self.symbols.declare("generated_file", path, spec.location)

        logger.debug(
            "registered %d types, %d constants, %d functions, %d protocols",
            len(self.symbols.namespaces.get("type", {})),
            len(self._constants),
            len(self._functions),
            len(self._protocols),
        )

    def _declare_module_name(
        self, name: str, what: str, location: Location | None, python: bool = True
    ) -> None:
        """Claim a name in the shared scope of generated modules and headers.

        python=False is for names that only the C header defines.
        """
        _check_identifier(name, what, location)
        if python and name in RESERVED_MODULE_NAMES:
            raise InvalidNameError(f"{what} '{name}' is reserved by generated code", location)
        self.symbols.declare(MODULE, name, location)

    def _declare_record_names(self, name: str, location: Location | None) -> None:
        # The ffi module mirrors every record as <Name>FFI
        self.symbols.declare(MODULE, f"{name}FFI", location)

    def _register_item(self, decl: Any) -> DefinitionItem:
        if isinstance(decl, DeclConstant):
            self.symbols.declare("constant", decl.name, decl.location)
            self._declare_module_name(decl.name, "constant", decl.location)
            self._constants[decl.name] = decl
            return DefinitionItem(ItemKind.CONSTANT, decl.name)

        if isinstance(decl, DeclEnum):
            self.symbols.declare("type", decl.name, decl.location)
            self._declare_module_name(decl.name, "enum", decl.location)
            _check_unique("enum label", [(v.name, v.location) for v in decl.values])
            for value in decl.values:
                self._declare_module_name(
                    f"{decl.name}_{value.name}", "enum value", value.location, python=False
                )
            self._enums[decl.name] = decl
            return DefinitionItem(ItemKind.ENUM, decl.name)

        if isinstance(decl, DeclObject):
            self.symbols.declare("type", decl.name, decl.location)
            self._declare_module_name(decl.name, "object", decl.location)
            # Struct tag behind the header's handle typedef
            self.symbols.declare(MODULE, f"{decl.name}_T", decl.location)
            self._objects[decl.name] = decl
            return DefinitionItem(ItemKind.OBJECT, decl.name)

        if isinstance(decl, DeclStruct):
            self.symbols.declare("type", decl.name, decl.location)
            self._declare_module_name(decl.name, "struct", decl.location)
            self._declare_record_names(decl.name, decl.location)
            _check_unique("field", [(f.name, f.location) for f in decl.fields])
            if decl.extensible:
                self._extensible[decl.name] = decl
                return DefinitionItem(ItemKind.EXTENSIBLE_STRUCT, decl.name)
            self._structs[decl.name] = decl
            return DefinitionItem(ItemKind.STRUCT, decl.name)

        if isinstance(decl, DeclFunction):
            self.symbols.declare("function", decl.name, decl.location)
            self._declare_module_name(decl.name, "function", decl.location, python=False)
            _check_unique("parameter", [(p.name, p.location) for p in decl.params])
            self._functions[decl.name] = decl
            return DefinitionItem(ItemKind.FUNCTION, decl.name)

        if isinstance(decl, DeclProtocol):
            self._register_protocol(decl)
            return DefinitionItem(ItemKind.PROTOCOL, decl.name)

        raise TypeError(f"unexpected declaration {decl!r}")

    def _register_protocol(self, decl: DeclProtocol) -> None:
        _check_identifier(decl.name, "protocol", decl.location)
        self.symbols.declare("protocol", decl.name, decl.location)

        names = Protocol(decl.name, ())
        for generated in (names.opcode_enum_name, names.header_struct_name, names.union_name):
            self.symbols.declare("type", generated, decl.location)
            self._declare_module_name(generated, "protocol type", decl.location)
        self._declare_record_names(names.header_struct_name, decl.location)
        for generated in (names.commands_name, names.decode_name):
            self._declare_module_name(generated, "protocol helper", decl.location)

        for command in decl.commands:
            self.symbols.declare("type", command.name, command.location)
            self._declare_module_name(command.name, "command", command.location)
            self._declare_record_names(command.name, command.location)
            self._declare_module_name(
                names.opcode_define(command.name), "opcode macro", command.location, python=False
            )
            _check_unique("field", [(f.name, f.location) for f in command.fields])
        self._protocols[decl.name] = decl

    # Pass 2

    def resolve_references(self) -> Api:
        """Build IR entities with every name resolved."""
        constants = {name: self._resolve_constant(decl) for name, decl in self._constants.items()}
        enums = {name: self._resolve_enum(decl) for name, decl in self._enums.items()}
        objects = {
            name: ObjectType(name=name, location=decl.location)
            for name, decl in self._objects.items()
        }
        structs = {
            name: PlainStruct(
                name=name,
                fields=self._resolve_fields(decl.fields, name, extensible=False),
                location=decl.location,
            )
            for name, decl in self._structs.items()
        }
        extensible = {
            name: ExtensibleStruct(
                name=name,
                fields=self._resolve_fields(decl.fields, name, extensible=True),
                location=decl.location,
            )
            for name, decl in self._extensible.items()
        }
        functions = {name: self._resolve_function(decl) for name, decl in self._functions.items()}
        protocols = {name: self._resolve_protocol(decl) for name, decl in self._protocols.items()}

        block_locations = {block.name: block.location for block in self.document.definitions}
        definitions = {
            name: Definitions(name=name, items=tuple(items), location=block_locations[name])
            for name, items in self._definitions.items()
        }

        name, version, copyright = self._resolve_api()

        return Api(
            name=name,
            version=version,
            copyright=copyright,
            constants=constants,
            enums=enums,
            objects=objects,
            structs=structs,
            extensible_structs=extensible,
            functions=functions,
            protocols=protocols,
            definitions=definitions,
            generated_files=tuple(self._resolve_generated_files()),
        )

    def _resolve_api(self) -> tuple[str, int | None, Copyright | None]:
        decl = self.document.api
        if decl is None:
            return "api", None, None

        _check_identifier(decl.name, "api", decl.location)
        opts = _options(decl.options, {"version"}, f"api '{decl.name}'")
        version = _int_option(opts.get("version"), "version", decl.location)

        copyright = None
        if decl.copyright is not None:
            c_opts = _options(decl.copyright.options, {"spdx", "holder", "year"}, "copyright")
            year = _int_option(c_opts.get("year"), "year", decl.location)
            copyright = Copyright(
                spdx=_str_option(c_opts.get("spdx"), "spdx", decl.location) or "",
                holder=_str_option(c_opts.get("holder"), "holder", decl.location) or "",
                year=year if year is not None else 0,
            )
        return decl.name, version, copyright

    def _resolve_type(self, name: str, context: str, location: Location | None) -> TypeRef:
        if is_primitive(name):
            return TypeRef(TypeKind.PRIMITIVE, name)
        if name in self._enums:
            return TypeRef(TypeKind.ENUM, name)
        if name in self._structs:
            return TypeRef(TypeKind.STRUCT, name)
        if name in self._extensible:
            return TypeRef(TypeKind.EXTENSIBLE_STRUCT, name)
        if name in self._objects:
            return TypeRef(TypeKind.OBJECT, name)
        raise UnresolvedReferenceError(name, context, location)

    def _constant_value(
        self,
        name: str,
        context: str,
        location: Location | None,
        stack: tuple[str, ...] = (),
    ) -> int | float:
        if name in self._constant_values:
            return self._constant_values[name]

        decl = self._constants.get(name)
        if decl is None:
            raise UnresolvedReferenceError(name, context, location)
        if name in stack:
            chain = " -> ".join(stack + (name,))
            raise InvalidConstantError(f"constant cycle {chain}", decl.location)

        if decl.type_name not in INTEGRAL_TYPES and decl.type_name not in FLOAT_TYPES:
            if is_primitive(decl.type_name) or self.symbols.contains("type", decl.type_name):
                raise InvalidConstantError(
                    f"constant '{name}' must have a numeric type, not '{decl.type_name}'",
                    decl.location,
                )
            raise UnresolvedReferenceError(decl.type_name, f"constant '{name}'", decl.location)

        value = decl.value
        if isinstance(value, Ref):
            value = self._constant_value(
                value.name, f"constant '{name}'", decl.location, stack + (name,)
            )
        elif isinstance(value, str):
            raise InvalidConstantError(f"constant '{name}' must be numeric", decl.location)

        if decl.type_name in FLOAT_TYPES:
            value = float(value)
        else:
            if not isinstance(value, int):
                raise InvalidConstantError(
                    f"constant '{name}' of type {decl.type_name} must be an integer", decl.location
                )
            low, high = integer_range(decl.type_name)
            if not low <= value <= high:
                raise InvalidConstantError(
                    f"constant '{name}' value {value} does not fit {decl.type_name}", decl.location
                )

        self._constant_values[name] = value
        return value

    def _resolve_constant(self, decl: DeclConstant) -> ConstantDef:
        value = self._constant_value(decl.name, f"constant '{decl.name}'", decl.location)
        return ConstantDef(
            name=decl.name,
            type=TypeRef(TypeKind.PRIMITIVE, decl.type_name),
            value=value,
            location=decl.location,
        )

    def _resolve_enum(self, decl: DeclEnum) -> EnumType:
        base = self._resolve_type(decl.base, f"base of enum '{decl.name}'", decl.location)
        if not is_integral(base):
            raise InvalidEnumError(
                f"enum '{decl.name}' base '{decl.base}' is not an integer type", decl.location
            )
        low, high = integer_range(base.name)

        values: list[EnumValue] = []
        seen: dict[int, str] = {}
        for item in decl.values:
            _check_identifier(item.name, "enum label", item.location)
            value = item.value
            if isinstance(value, Ref):
                value = self._constant_value(value.name, f"enum '{decl.name}'", item.location)
            if not isinstance(value, int):
                raise InvalidEnumError(
                    f"enum '{decl.name}' label '{item.name}' must have an integer value",
                    item.location,
                )
            if not low <= value <= high:
                raise InvalidEnumError(
                    f"enum '{decl.name}' value {value} does not fit {base.name}", item.location
                )
            if value in seen:
                raise InvalidEnumError(
                    f"enum '{decl.name}' labels '{seen[value]}' and '{item.name}'"
                    f" share value {value}",
                    item.location,
                )
            seen[value] = item.name
            values.append(EnumValue(item.name, value))

        return EnumType(
            name=decl.name,
            base=base,
            values=tuple(values),
            flags=decl.flags,
            location=decl.location,
        )

    def _resolve_fields(
        self, decls: list[DeclField], owner: str, extensible: bool, command: bool = False
    ) -> tuple[Field, ...]:
        siblings = {decl.name for decl in decls}
        fields: list[Field] = []
        for decl in decls:
            _check_identifier(decl.name, "field", decl.location)
            reserved = decl.name in RESERVED_FIELD_NAMES
            if reserved or (command and decl.name in RESERVED_COMMAND_FIELDS):
                raise InvalidNameError(
                    f"field '{owner}.{decl.name}' clashes with a generated member", decl.location
                )
            fields.append(self._resolve_field(decl, owner, siblings, extensible))
        return tuple(fields)

    def _resolve_field(
        self, decl: DeclField, owner: str, siblings: set[str], extensible: bool
    ) -> Field:
        context = f"field '{owner}.{decl.name}'"
        ftype = self._resolve_type(decl.type_name, context, decl.location)
        bracket = decl.bracket

        if bracket is None:
            return Field(decl.name, ftype, location=decl.location)

        if isinstance(bracket, int):
            if bracket <= 0:
                raise InvalidArrayLengthError(
                    f"{context} has non-positive array length {bracket}", decl.location
                )
            return Field(decl.name, ftype, array_length=bracket, location=decl.location)

        is_sibling = bracket in siblings
        is_constant = bracket in self._constants
        if is_sibling and is_constant:
            raise InvalidPointerFieldError(
                f"{context}: '{bracket}' names both a field and a constant", decl.location
            )
        if is_sibling:
            return Field(decl.name, ftype, count_field=bracket, location=decl.location)
        if is_constant:
            length = self._constant_value(bracket, context, decl.location)
            if not isinstance(length, int) or length <= 0:
                raise InvalidArrayLengthError(
                    f"{context}: constant '{bracket}' is not a positive integer", decl.location
                )
            return Field(
                decl.name,
                ftype,
                array_length=length,
                length_constant=bracket,
                location=decl.location,
            )
        if extensible:
            raise InvalidPointerFieldError(
                f"{context}: count field '{bracket}' is not declared", decl.location
            )
        raise UnresolvedReferenceError(bracket, context, decl.location)

    def _resolve_function(self, decl: DeclFunction) -> FunctionSig:
        params: list[Parameter] = []
        for param in decl.params:
            _check_identifier(param.name, "parameter", param.location)
            context = f"parameter '{decl.name}.{param.name}'"
            params.append(
                Parameter(
                    name=param.name,
                    type=self._resolve_type(param.type_name, context, param.location),
                    pointer=param.pointer,
                )
            )
        returns = None
        if decl.returns is not None:
            returns = self._resolve_type(
                decl.returns, f"return type of '{decl.name}'", decl.location
            )
        return FunctionSig(
            name=decl.name, parameters=tuple(params), returns=returns, location=decl.location
        )

    def _resolve_protocol(self, decl: DeclProtocol) -> Protocol:
        opts = _options(decl.options, {"version"}, f"protocol '{decl.name}'")
        commands = tuple(self._resolve_command(c, decl.name) for c in decl.commands)
        return Protocol(
            name=decl.name,
            commands=commands,
            version=_int_option(opts.get("version"), "version", decl.location),
            location=decl.location,
        )

    def _resolve_command(self, decl: DeclCommand, protocol: str) -> Command:
        if decl.opcode is not None and not 0 <= decl.opcode <= MAX_OPCODE:
            raise InvalidOpcodeError(
                f"command '{decl.name}' opcode {decl.opcode} does not fit u32", decl.location
            )
        return Command(
            name=decl.name,
            protocol=protocol,
            direction=Direction(decl.direction),
            fields=self._resolve_fields(decl.fields, decl.name, extensible=True, command=True),
            opcode=decl.opcode,
            location=decl.location,
        )

    def _resolve_generated_files(self) -> list[GeneratedFileSpec]:
        result: list[GeneratedFileSpec] = []
        for decl in self.document.generated_files:
            opts = _options(
                decl.options, {"out_path", "file_name", "file_type", "runtime"}, "generated_file"
            )
            file_name = _str_option(opts.get("file_name"), "file_name", decl.location)
            if not file_name:
                raise ValidationError("generated_file is missing 'file_name'", decl.location)

            file_type = _str_option(opts.get("file_type"), "file_type", decl.location)
            try:
                kind = OutputKind(file_type)
            except ValueError as err:
                raise ValidationError(
                    f"generated_file '{file_name}' has unknown file_type '{file_type}'",
                    decl.location,
                ) from err

            if not decl.instantiations:
                raise ValidationError(
                    f"generated_file '{file_name}' instantiates no definitions", decl.location
                )
            for target in decl.instantiations:
                if target not in self._definitions:
                    raise UnresolvedReferenceError(
                        target, f"generated_file '{file_name}'", decl.location
                    )

            result.append(
                GeneratedFileSpec(
                    out_path=_str_option(opts.get("out_path"), "out_path", decl.location) or "",
                    file_name=file_name,
                    kind=kind,
                    definitions=tuple(decl.instantiations),
                    includes=tuple(decl.includes),
                    runtime=_str_option(opts.get("runtime"), "runtime", decl.location),
                    location=decl.location,
                )
            )
        return result

    # Pass 3

    def check_struct_well_formedness(self, api: Api) -> None:
        """Reject records the layout planner cannot lay out."""
        for struct in api.structs.values():
            self._check_plain_struct(struct)
        self._check_embedding_cycles(api)

        for record in api.extensible_structs.values():
            if not record.fields:
                raise InvalidExtensibleStructError(
                    f"extensible struct '{record.name}' has no fields", record.location
                )
            self._check_no_objects(record.name, record.fields)
            self._check_pointer_fields(record.name, record.fields, InvalidExtensibleStructError)

        for command in api.commands():
            self._check_no_objects(command.name, command.fields)
            self._check_pointer_fields(command.name, command.fields, InvalidExtensibleStructError)

    def _check_no_objects(self, owner: str, fields: tuple[Field, ...]) -> None:
        for f in fields:
            if f.type.is_object:
                raise InvalidObjectUseError(
                    f"'{owner}.{f.name}' holds object '{f.type.name}';"
                    " objects belong in functions and plain structs",
                    f.location,
                )

    def _check_plain_struct(self, struct: PlainStruct) -> None:
        if not struct.fields:
            raise InvalidPlainStructError(f"struct '{struct.name}' has no fields", struct.location)
        for f in struct.fields:
            if f.is_pointer:
                raise InvalidPlainStructError(
                    f"struct '{struct.name}' has pointer field '{f.name}';"
                    " use an extensible_struct",
                    f.location,
                )
            if f.type.is_extensible:
                raise InvalidPlainStructError(
                    f"struct '{struct.name}' embeds extensible struct '{f.type.name}'",
                    f.location,
                )

    def _check_embedding_cycles(self, api: Api) -> None:
        state: dict[str, int] = {}

        def visit(name: str, path: tuple[str, ...]) -> None:
            if state.get(name) == 2:
                return
            if state.get(name) == 1:
                chain = " -> ".join(path[path.index(name):] + (name,))
                raise InvalidPlainStructError(
                    f"struct '{name}' embeds itself ({chain})", api.structs[name].location
                )
            state[name] = 1
            for f in api.structs[name].fields:
                if f.type.is_struct:
                    visit(f.type.name, path + (name,))
            state[name] = 2

        for name in api.structs:
            visit(name, ())

    def _check_pointer_fields(
        self, owner: str, fields: tuple[Field, ...], embed_error: type[ValidationError]
    ) -> None:
        index = {f.name: i for i, f in enumerate(fields)}
        for position, f in enumerate(fields):
            if f.type.is_extensible and not f.is_pointer:
                raise embed_error(
                    f"'{owner}.{f.name}' embeds extensible struct '{f.type.name}' by value",
                    f.location,
                )
            if not f.is_pointer:
                continue

            assert f.count_field is not None
            count = fields[index[f.count_field]]
            if index[f.count_field] >= position:
                raise InvalidPointerFieldError(
                    f"pointer field '{owner}.{f.name}' must follow its count field"
                    f" '{f.count_field}'",
                    f.location,
                )
            if count.is_pointer or count.is_array or not is_integral(count.type):
                raise InvalidPointerFieldError(
                    f"count field '{owner}.{count.name}' of '{f.name}' must be a scalar integer",
                    f.location,
                )


def build_catalog(document: Document) -> Api:
    """Build the resolved IR for a parsed document."""
    return CatalogBuilder(document, SymbolTable()).build()
