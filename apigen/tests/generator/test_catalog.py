"""Tests for name resolution and schema validation."""

import pytest

from apigen.generator import parse
from apigen.generator.catalog import CatalogBuilder, SymbolTable, build_catalog
from apigen.generator.errors import (
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
from apigen.generator.types import Direction, ItemKind, OutputKind, TypeKind


def build(text):
    return build_catalog(parse(text))


def definitions(body):
    return build(f"definitions d {{ {body} }}")


def describe_resolution():
    def resolves_field_types(expect):
        api = definitions(
            """
            enum Kind: u8 { A = 0 }
            struct Point { x: i32; y: i32 }
            extensible_struct Shape { kind: Kind; count: u32; points: Point[count] }
            """
        )
        fields = api.extensible_structs["Shape"].fields
        expect([f.type.kind for f in fields]) == [
            TypeKind.ENUM,
            TypeKind.PRIMITIVE,
            TypeKind.STRUCT,
        ]
        expect(fields[2].count_field) == "count"
        expect(fields[2].is_pointer) == True

    def resolves_constant_array_lengths(expect):
        api = definitions(
            """
            constants { N: u32 = 3 }
            struct Table { values: u16[N] }
            """
        )
        f = api.structs["Table"].fields[0]
        expect(f.array_length) == 3
        expect(f.length_constant) == "N"
        expect(f.is_pointer) == False

    def resolves_constant_chains(expect):
        api = definitions("constants { A: u8 = B; B: u8 = 7; C: f64 = A }")
        expect(api.constants["A"].value) == 7
        expect(api.constants["C"].value) == 7.0
        expect(isinstance(api.constants["C"].value, float)) == True

    def resolves_enum_values_from_constants(expect):
        api = definitions("constants { BIT: u32 = 4 } flags F: u32 { A = 1; B = BIT }")
        enum = api.enums["F"]
        expect(enum.flags) == True
        expect([v.value for v in enum.values]) == [1, 4]

    def keeps_document_order_of_items(expect):
        api = definitions(
            """
            struct B { x: u8 }
            constants { K: u8 = 1 }
            struct A { b: B }
            function f()
            protocol P { request Go {} }
            """
        )
        items = api.definitions["d"].items
        expect([i.kind for i in items]) == [
            ItemKind.STRUCT,
            ItemKind.CONSTANT,
            ItemKind.STRUCT,
            ItemKind.FUNCTION,
            ItemKind.PROTOCOL,
        ]
        expect(list(api.structs)) == ["B", "A"]

    def resolves_functions(expect):
        api = definitions("struct Info { x: u8 } function make(info: *Info, n: u32) -> i32")
        fn = api.functions["make"]
        expect(fn.parameters[0].pointer) == True
        expect(fn.parameters[0].type.kind) == TypeKind.STRUCT
        expect(fn.returns.name) == "i32"

    def resolves_protocol_commands(expect):
        api = definitions("protocol P { version = 2; request A = 3 { x: u8 } event B {} }")
        protocol = api.protocols["P"]
        expect(protocol.version) == 2
        expect([c.direction for c in protocol.commands]) == [Direction.REQUEST, Direction.EVENT]
        expect(protocol.commands[0].opcode) == 3
        expect(protocol.commands[1].opcode) == None
        expect(api.command("B").protocol) == "P"

    def builds_api_metadata(expect):
        api = build('api gpu { version = 2 copyright { spdx = "MIT" holder = "X" year = 2024 } }')
        expect(api.name) == "gpu"
        expect(api.version) == 2
        expect(api.copyright.holder) == "X"

    def defaults_missing_api_block(expect):
        api = definitions("struct A { x: u8 }")
        expect(api.name) == "api"
        expect(api.version) == None
        expect(api.copyright) == None

    def uses_the_given_symbol_table(expect):
        symbols = SymbolTable()
        CatalogBuilder(parse("definitions d { struct A { x: u8 } }"), symbols).build()
        expect(symbols.contains("type", "A")) == True
        expect(symbols.contains("type", "u8")) == True
        expect(symbols.contains("definitions", "d")) == True


def describe_generated_files():
    def resolves_file_specs(expect):
        api = build(
            """
            definitions core { struct A { x: u8 } }
            generated_file {
                out_path = "gen/"
                file_name = "core.h"
                file_type = header
                instantiate core
                include "base.h"
            }
            """
        )
        spec = api.generated_files[0]
        expect(spec.kind) == OutputKind.HEADER
        expect(spec.path) == "gen/core.h"
        expect(spec.definitions) == ("core",)
        expect(spec.includes) == ("base.h",)

    def accepts_runtime_option(expect):
        api = build(
            """
            definitions core { struct A { x: u8 } }
            generated_file {
                file_name = "a.py"
                file_type = codec
                runtime = "my_runtime"
                instantiate core
            }
            """
        )
        expect(api.generated_files[0].runtime) == "my_runtime"
        expect(api.generated_files[0].path) == "a.py"

    def rejects_unknown_file_type(expect):
        with pytest.raises(ValidationError):
            build(
                'definitions c { struct A { x: u8 } } '
                'generated_file { file_name = "a" file_type = rust instantiate c }'
            )

    def rejects_unknown_option(expect):
        with pytest.raises(ValidationError):
            build(
                'definitions c { struct A { x: u8 } } '
                'generated_file { file_name = "a" file_type = ir color = 1 instantiate c }'
            )

    def requires_file_name(expect):
        with pytest.raises(ValidationError):
            build(
                "definitions c { struct A { x: u8 } } "
                "generated_file { file_type = ir instantiate c }"
            )

    def requires_an_instantiation(expect):
        with pytest.raises(ValidationError):
            build('generated_file { file_name = "a" file_type = ir }')

    def rejects_unknown_instantiation(expect):
        with pytest.raises(UnresolvedReferenceError) as exc:
            build('generated_file { file_name = "a" file_type = ir instantiate missing }')
        expect(exc.value.name) == "missing"

    def rejects_duplicate_paths(expect):
        with pytest.raises(DuplicateNameError):
            build(
                """
                definitions c { struct A { x: u8 } }
                generated_file { file_name = "a" file_type = ir instantiate c }
                generated_file { file_name = "a" file_type = codec instantiate c }
                """
            )


def describe_duplicate_names():
    def rejects_duplicate_types(expect):
        with pytest.raises(DuplicateNameError) as exc:
            definitions("struct A { x: u8 } enum A: u8 { X = 0 }")
        expect(exc.value.name) == "A"
        expect(exc.value.kind) == "type"

    def rejects_duplicate_types_across_blocks(expect):
        with pytest.raises(DuplicateNameError):
            build("definitions a { struct A { x: u8 } } definitions b { struct A { x: u8 } }")

    def rejects_duplicate_fields(expect):
        with pytest.raises(DuplicateNameError):
            definitions("struct A { x: u8; x: u16 }")

    def rejects_duplicate_enum_labels(expect):
        with pytest.raises(DuplicateNameError):
            definitions("enum E: u8 { A = 0; A = 1 }")

    def rejects_duplicate_constants(expect):
        with pytest.raises(DuplicateNameError):
            definitions("constants { A: u8 = 1; A: u8 = 2 }")

    def rejects_command_shadowing_generated_types(expect):
        with pytest.raises(DuplicateNameError):
            definitions("protocol P { request POpcode {} }")

    def rejects_constant_sharing_a_type_name(expect):
        with pytest.raises(DuplicateNameError) as exc:
            definitions("constants { Point: u8 = 1 } struct Point { x: u8 }")
        expect(exc.value.name) == "Point"
        expect(exc.value.kind) == "top-level"

    def rejects_function_sharing_a_type_name(expect):
        with pytest.raises(DuplicateNameError):
            definitions("struct open { x: u8 } function open(x: u32)")

    def rejects_struct_shadowing_protocol_helpers(expect):
        for name in ["decode_p", "P_COMMANDS", "PCommand"]:
            with pytest.raises(DuplicateNameError) as exc:
                definitions(f"struct {name} {{ x: u8 }} protocol P {{ request A {{}} }}")
            expect(exc.value.name) == name

    def rejects_struct_shadowing_native_mirror(expect):
        with pytest.raises(DuplicateNameError):
            definitions("struct A { x: u8 } struct AFFI { x: u8 }")

    def rejects_enum_value_define_collisions(expect):
        with pytest.raises(DuplicateNameError):
            definitions("enum E: u8 { A = 0 } constants { E_A: u8 = 1 }")

    def allows_same_name_for_field_and_type(expect):
        api = definitions("struct Point { x: u8 } struct Line { Point: Point }")
        expect(api.structs["Line"].fields[0].type.name) == "Point"


def describe_names():
    def rejects_python_keywords(expect):
        with pytest.raises(InvalidNameError):
            definitions("struct A { class: u8 }")

    def rejects_leading_underscore(expect):
        with pytest.raises(InvalidNameError):
            definitions("struct A { _x: u8 }")

    def rejects_generated_member_names(expect):
        with pytest.raises(InvalidNameError):
            definitions("struct A { encode: u8 }")

    def rejects_header_field_in_commands(expect):
        with pytest.raises(InvalidNameError):
            definitions("protocol P { request A { hdr: u8 } }")

    def allows_padding_in_structs(expect):
        api = definitions("struct A { padding: u8 }")
        expect(api.structs["A"].fields[0].name) == "padding"

    def rejects_reserved_type_names(expect):
        with pytest.raises(InvalidNameError):
            definitions("struct Struct { x: u8 }")

    def rejects_runtime_names_for_constants(expect):
        with pytest.raises(InvalidNameError) as exc:
            definitions("constants { HEADER_SIZE: u32 = 8 }")
        expect("reserved" in str(exc.value)) == True

    def rejects_runtime_names_for_structs(expect):
        with pytest.raises(InvalidNameError):
            definitions("struct require { x: u8 }")

    def rejects_runtime_names_for_enums(expect):
        with pytest.raises(InvalidNameError):
            definitions("enum ctypes: u8 { A = 0 }")

    def rejects_c_keywords(expect):
        with pytest.raises(InvalidNameError):
            definitions("struct A { int: u8 }")
        with pytest.raises(InvalidNameError):
            definitions("struct size_t { x: u8 }")

    def allows_runtime_names_for_functions(expect):
        api = definitions("function bind(x: u32)")
        expect("bind" in api.functions) == True


def describe_references():
    def rejects_unknown_field_type(expect):
        with pytest.raises(UnresolvedReferenceError) as exc:
            definitions("struct A { x: Missing }")
        expect(exc.value.name) == "Missing"
        expect(exc.value.location.line) == 1

    def rejects_unknown_array_length_in_plain_struct(expect):
        with pytest.raises(UnresolvedReferenceError):
            definitions("struct A { x: u8[N] }")

    def rejects_unknown_count_in_extensible_struct(expect):
        with pytest.raises(InvalidPointerFieldError):
            definitions("extensible_struct A { x: u8[n] }")

    def rejects_name_that_is_both_field_and_constant(expect):
        with pytest.raises(InvalidPointerFieldError):
            definitions("constants { n: u32 = 2 } extensible_struct A { n: u32; x: u8[n] }")

    def rejects_unknown_parameter_type(expect):
        with pytest.raises(UnresolvedReferenceError):
            definitions("function f(x: Missing)")

    def rejects_unknown_constant(expect):
        with pytest.raises(UnresolvedReferenceError):
            definitions("constants { A: u8 = B }")


def describe_constants():
    def rejects_cycles(expect):
        with pytest.raises(InvalidConstantError):
            definitions("constants { A: u8 = B; B: u8 = A }")

    def rejects_out_of_range(expect):
        with pytest.raises(InvalidConstantError):
            definitions("constants { A: u8 = 256 }")

    def rejects_negative_unsigned(expect):
        with pytest.raises(InvalidConstantError):
            definitions("constants { A: u32 = -1 }")

    def rejects_float_for_integer(expect):
        with pytest.raises(InvalidConstantError):
            definitions("constants { A: u32 = 1.5 }")

    def rejects_non_numeric_types(expect):
        with pytest.raises(InvalidConstantError):
            definitions("struct S { x: u8 } constants { A: S = 1 }")

    def rejects_strings(expect):
        with pytest.raises(InvalidConstantError):
            definitions('constants { A: u32 = "x" }')


def describe_enums():
    def rejects_non_integral_base(expect):
        with pytest.raises(InvalidEnumError):
            definitions("enum E: f32 { A = 0 }")

    def rejects_struct_base(expect):
        with pytest.raises(InvalidEnumError):
            definitions("struct S { x: u8 } enum E: S { A = 0 }")

    def rejects_duplicate_values(expect):
        with pytest.raises(InvalidEnumError):
            definitions("enum E: u8 { A = 1; B = 1 }")

    def rejects_out_of_range_values(expect):
        with pytest.raises(InvalidEnumError):
            definitions("enum E: i8 { A = 128 }")

    def accepts_negative_signed_values(expect):
        api = definitions("enum E: i8 { A = -128 }")
        expect(api.enums["E"].values[0].value) == -128


def describe_arrays():
    def rejects_zero_length(expect):
        with pytest.raises(InvalidArrayLengthError):
            definitions("struct A { x: u8[0] }")

    def rejects_zero_length_constant(expect):
        with pytest.raises(InvalidArrayLengthError):
            definitions("constants { N: u8 = 0 } struct A { x: u8[N] }")

    def rejects_float_length_constant(expect):
        with pytest.raises(InvalidArrayLengthError):
            definitions("constants { N: f32 = 2.0 } struct A { x: u8[N] }")


def describe_struct_well_formedness():
    def rejects_pointer_in_plain_struct(expect):
        with pytest.raises(InvalidPlainStructError):
            definitions("struct A { n: u32; x: u8[n] }")

    def rejects_extensible_inside_plain_struct(expect):
        with pytest.raises(InvalidPlainStructError):
            definitions("extensible_struct E { n: u32; x: u8[n] } struct A { e: E }")

    def rejects_extensible_by_value_in_extensible_struct(expect):
        with pytest.raises(InvalidExtensibleStructError):
            definitions("extensible_struct E { x: u8 } extensible_struct A { e: E }")

    def rejects_extensible_by_value_in_command(expect):
        with pytest.raises(InvalidExtensibleStructError):
            definitions("extensible_struct E { x: u8 } protocol P { request A { e: E } }")

    def rejects_self_embedding(expect):
        with pytest.raises(InvalidPlainStructError):
            definitions("struct A { a: A }")

    def rejects_embedding_cycles(expect):
        with pytest.raises(InvalidPlainStructError):
            definitions("struct A { b: B } struct B { c: C } struct C { a: A }")

    def rejects_empty_structs(expect):
        with pytest.raises(InvalidPlainStructError):
            definitions("struct A { }")
        with pytest.raises(InvalidExtensibleStructError):
            definitions("extensible_struct A { }")

    def allows_empty_commands(expect):
        api = definitions("protocol P { request Ping {} }")
        expect(api.command("Ping").fields) == ()

    def requires_count_before_pointer(expect):
        with pytest.raises(InvalidPointerFieldError):
            definitions("extensible_struct A { x: u8[n]; n: u32 }")

    def requires_integral_count(expect):
        with pytest.raises(InvalidPointerFieldError):
            definitions("extensible_struct A { n: f32; x: u8[n] }")

    def rejects_array_as_count(expect):
        with pytest.raises(InvalidPointerFieldError):
            definitions("extensible_struct A { n: u32[2]; x: u8[n] }")

    def rejects_pointer_as_count(expect):
        with pytest.raises(InvalidPointerFieldError):
            definitions("extensible_struct A { m: u32; n: u32[m]; x: u8[n] }")

    def rejects_enum_as_count(expect):
        with pytest.raises(InvalidPointerFieldError):
            definitions("enum E: u8 { A = 0 } extensible_struct A { n: E; x: u8[n] }")

    def allows_pointer_to_extensible_struct(expect):
        api = definitions(
            """
            extensible_struct Inner { n: u8; data: u8[n] }
            extensible_struct Outer { count: i32; items: Inner[count] }
            """
        )
        expect(api.extensible_structs["Outer"].pointer_fields[0].name) == "items"


def describe_opcodes():
    def rejects_opcode_above_u32(expect):
        with pytest.raises(InvalidOpcodeError):
            definitions("protocol P { request A = 0x100000000 {} }")

    def accepts_largest_opcode(expect):
        api = definitions("protocol P { request A = 0xFFFFFFFF {} }")
        expect(api.command("A").opcode) == 0xFFFFFFFF


def describe_objects():
    def resolves_object_references(expect):
        api = definitions(
            """
            object Device
            struct Slot { device: Device; spares: Device[2] }
            function open_device(index: u32, out: *Device) -> Device
            """
        )
        expect(list(api.objects)) == ["Device"]
        expect(api.structs["Slot"].fields[0].type.kind) == TypeKind.OBJECT
        fn = api.functions["open_device"]
        expect(fn.parameters[1].type.is_object) == True
        expect(fn.returns.kind) == TypeKind.OBJECT
        expect(api.definitions["d"].items[0].kind) == ItemKind.OBJECT

    def rejects_objects_in_extensible_structs(expect):
        with pytest.raises(InvalidObjectUseError) as exc:
            definitions("object Device extensible_struct Holder { device: Device }")
        expect("Holder.device" in str(exc.value)) == True

    def rejects_objects_in_commands(expect):
        with pytest.raises(InvalidObjectUseError):
            definitions("object Device protocol P { request Open { device: Device } }")

    def rejects_object_pointers_in_structs(expect):
        with pytest.raises(InvalidPlainStructError):
            definitions("object Device struct A { n: u32; devices: Device[n] }")

    def rejects_object_enum_base(expect):
        with pytest.raises(InvalidEnumError):
            definitions("object Device enum E: Device { A = 0 }")

    def rejects_object_constant_type(expect):
        with pytest.raises(InvalidConstantError):
            definitions("object Device constants { D: Device = 1 }")

    def rejects_duplicate_object_names(expect):
        with pytest.raises(DuplicateNameError):
            definitions("object Device struct Device { x: u8 }")

    def reserves_the_header_struct_tag(expect):
        with pytest.raises(DuplicateNameError):
            definitions("object Device struct Device_T { x: u8 }")
