"""Tests for generated codec serialization"""

import struct

from pytest import approx, fixture, raises

from apigen.generator import compile_schema
from apigen.generator.python import render
from apigen.proto.serialization import (
    SerializationError,
    TruncatedInputError,
    UnknownOpcodeError,
)


def gen_code(text):
    gbl = globals().copy()

    compiled = compile_schema(text)
    generated_code = render(compiled, runtime_import="apigen.proto")
    exec(generated_code, gbl)
    return gbl


@fixture
def gen(magma_schema):
    return gen_code(magma_schema)


def describe_plain_structs():
    def encodes_simple_struct(expect, gen):
        Point = gen["Point"]

        packed = Point(x=1, y=-2).encode()
        expect(bytes(packed)) == b"\x01\x00\x00\x00\xfe\xff\xff\xff"
        expect(Point.SIZE) == 8

        recovered, consumed = Point.unpack(packed)
        expect(recovered) == Point(x=1, y=-2)
        expect(consumed) == 8

    def zero_fills_alignment_gaps(expect, gen):
        Mixed = gen["Mixed"]
        Point = gen["Point"]
        Status = gen["Status"]

        value = Mixed(flag=7, value=0x01020304, wide=2**40, status=Status.Lost, origin=Point(3, 4))
        buf = bytearray(b"\xaa" * 32)
        end = value.encode_into(buf, 0)
        expect(end) == 32
        expect(bytes(buf)) == bytes.fromhex(
            "07000000"
            "04030201"
            "0000000000010000"
            "02000000"
            "0300000004000000"
            "00000000"
        )

        recovered = Mixed.decode(buf)
        expect(recovered) == value
        expect(recovered.status) == Status.Lost
        expect(isinstance(recovered.status, Status)) == True

    def encodes_fixed_arrays(expect, gen):
        Properties = gen["Properties"]
        Point = gen["Point"]

        value = Properties(heap_count=2, heaps=[1, 2, 3, 4], corners=[Point(0, 1), Point(2, 3)])
        packed = value.encode()
        expect(len(packed)) == 36
        expect(struct.unpack_from("<5I", packed)) == (2, 1, 2, 3, 4)

        recovered, consumed = Properties.unpack(packed)
        expect(recovered) == value
        expect(consumed) == 36

    def encodes_at_offset(expect, gen):
        Point = gen["Point"]

        buf = bytearray(12)
        expect(Point(x=5, y=6).encode_into(buf, 4)) == 12
        expect(Point.unpack(buf, 4)) == (Point(5, 6), 8)

    def exposes_constants_and_field_metadata(expect, gen):
        expect(gen["MAX_HEAPS"]) == 4
        expect(gen["MAX_TYPES"]) == 4
        expect(gen["SCALE"]) == approx(1.5)

        Properties = gen["Properties"]
        info = {f.name: f.metadata["apigen"] for f in Properties.__dataclass_fields__.values()}
        expect(info["heaps"].array_length) == 4
        expect(info["corners"].wire_type) == "Point"


def describe_extensible_structs():
    def encodes_polygon_with_three_points(expect, gen):
        Polygon = gen["Polygon"]
        Point = gen["Point"]

        polygon = Polygon(count=3, points=[Point(1, 2), Point(3, 4), Point(5, 6)])
        packed = polygon.encode()
        expect(len(packed)) == 28
        expect(polygon.encoded_size()) == 28
        expect(struct.unpack("<7i", packed)) == (3, 1, 2, 3, 4, 5, 6)

        recovered, consumed = Polygon.unpack(packed)
        expect(recovered) == polygon
        expect(consumed) == 28

    def encodes_empty_payloads(expect, gen):
        Polygon = gen["Polygon"]

        packed = Polygon(count=0, points=[]).encode()
        expect(bytes(packed)) == b"\x00\x00\x00\x00"
        expect(Polygon.decode(packed)) == Polygon(count=0, points=[])

    def appends_payloads_in_declaration_order(expect, gen):
        Blob = gen["Blob"]

        blob = Blob(size=3, data=b"abc", value_count=2, values=[7, 9])
        packed = blob.encode()
        expect(bytes(packed)) == bytes.fromhex(
            "03000000" "0200" "0000" "616263" "07000000" "09000000"
        )

        recovered, consumed = Blob.unpack(packed)
        expect(consumed) == 19
        expect(recovered) == blob
        expect(recovered.values) == [7, 9]

    def decodes_byte_payloads_without_copying(expect, gen):
        Blob = gen["Blob"]

        data = bytes(Blob(size=3, data=b"xyz", value_count=0, values=[]).encode())
        blob = Blob.decode(data)
        expect(isinstance(blob.data, memoryview)) == True
        expect(blob.data.obj is data) == True
        expect(bytes(blob.data)) == b"xyz"

    def nests_extensible_structs(expect, gen):
        Shape = gen["Shape"]
        Polygon = gen["Polygon"]
        Point = gen["Point"]

        shape = Shape(
            polygon_count=2,
            polygons=[Polygon(count=1, points=[Point(1, 1)]), Polygon(count=0, points=[])],
        )
        packed = shape.encode()
        expect(len(packed)) == 20
        expect(struct.unpack("<5i", packed)) == (2, 1, 1, 1, 0)

        recovered, consumed = Shape.unpack(packed)
        expect(recovered) == shape
        expect(consumed) == 20

    def tolerates_trailing_bytes(expect, gen):
        Polygon = gen["Polygon"]
        Point = gen["Point"]

        packed = Polygon(count=1, points=[Point(1, 2)]).encode() + b"\xff\xff"
        recovered, consumed = Polygon.unpack(packed)
        expect(consumed) == 12
        expect(recovered.points) == [Point(1, 2)]


def describe_commands():
    def writes_header_and_fields(expect, gen):
        CreateDevice = gen["CreateDevice"]
        MemoryFlags = gen["MemoryFlags"]

        command = CreateDevice(
            device_id=7, memory_flags=MemoryFlags.HostVisible | MemoryFlags.Coherent
        )
        packed = command.encode()
        expect(bytes(packed)) == bytes.fromhex("05000000" "10000000" "07000000" "03000000")
        expect(CreateDevice.OPCODE) == 5
        expect(CreateDevice.PROTOCOL) == "Magma"
        expect(CreateDevice.DIRECTION) == "request"

        recovered = CreateDevice.decode(packed)
        expect(recovered) == command
        expect(recovered.memory_flags) == MemoryFlags.HostVisible | MemoryFlags.Coherent

    def pads_commands_to_eight_bytes(expect, gen):
        DeviceCreated = gen["DeviceCreated"]
        Status = gen["Status"]

        packed = DeviceCreated(status=Status.Error).encode()
        expect(len(packed)) == 16
        expect(struct.unpack("<IIII", packed)) == (0, 16, 1, 0)

    def sizes_commands_with_payloads(expect, gen):
        Upload = gen["Upload"]

        command = Upload(handle=1, size=3, data=b"xyz")
        packed = command.encode()
        expect(len(packed)) == 32
        expect(struct.unpack_from("<II", packed)) == (2, 32)
        expect(bytes(packed[24:27])) == b"xyz"
        expect(bytes(packed[27:])) == bytes(5)

        recovered, consumed = Upload.unpack(packed)
        expect(consumed) == 32
        expect(recovered) == command

    def encodes_empty_commands(expect, gen):
        Ping = gen["Ping"]

        packed = Ping().encode()
        expect(bytes(packed)) == b"\x03\x00\x00\x00\x08\x00\x00\x00"
        expect(Ping.decode(packed)) == Ping()

    def builds_opcode_enum(expect, gen):
        MagmaOpcode = gen["MagmaOpcode"]

        expect([(m.name, m.value) for m in MagmaOpcode]) == [
            ("CreateDevice", 5),
            ("DeviceCreated", 0),
            ("DeviceLost", 1),
            ("Upload", 2),
            ("Ping", 3),
        ]
        expect(gen["MAGMA_COMMANDS"][MagmaOpcode.Upload]) == gen["Upload"]

    def dispatches_on_opcode(expect, gen):
        decode_magma = gen["decode_magma"]
        DeviceLost = gen["DeviceLost"]
        Upload = gen["Upload"]

        expect(decode_magma(DeviceLost(reason=4).encode())) == DeviceLost(reason=4)
        upload = decode_magma(Upload(handle=9, size=1, data=b"q").encode())
        expect(isinstance(upload, Upload)) == True
        expect(upload.handle) == 9

    def rejects_unknown_opcodes(expect, gen):
        decode_magma = gen["decode_magma"]

        with raises(UnknownOpcodeError) as exc:
            decode_magma(struct.pack("<II", 99, 8))
        expect(exc.value.opcode) == 99
        expect(exc.value.protocol) == "Magma"

    def rejects_mismatched_opcode(expect, gen):
        DeviceCreated = gen["DeviceCreated"]
        DeviceLost = gen["DeviceLost"]

        with raises(SerializationError):
            DeviceCreated.decode(DeviceLost(reason=1).encode())

    def rejects_size_smaller_than_header(expect, gen):
        Ping = gen["Ping"]

        with raises(SerializationError):
            Ping.decode(struct.pack("<II", 3, 4))

    def rejects_size_beyond_input(expect, gen):
        Ping = gen["Ping"]

        with raises(TruncatedInputError):
            Ping.decode(struct.pack("<II", 3, 16))


def describe_generation():
    def renders_identically_twice(expect, compiled_magma):
        first = render(compiled_magma, runtime_import="apigen.proto")
        second = render(compiled_magma, runtime_import="apigen.proto")
        expect(first) == second

    def stamps_copyright(expect, compiled_magma):
        code = render(compiled_magma)
        expect("# Copyright 2025 Example Authors" in code) == True
        expect("from apigen_runtime import (" in code) == True

    def handles_protocols_without_commands(expect):
        compiled = compile_schema("definitions d { protocol Empty {} }")
        gbl = globals().copy()
        exec(render(compiled, runtime_import="apigen.proto"), gbl)

        with raises(UnknownOpcodeError):
            gbl["decode_empty"](struct.pack("<II", 0, 8))
        expect(gbl["EMPTY_COMMANDS"]) == {}
