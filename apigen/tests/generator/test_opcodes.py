"""Tests for opcode assignment."""

import pytest

from apigen.generator import compile_schema, resolve_opcodes
from apigen.generator.errors import DuplicateOpcodeError
from apigen.generator.types import Direction, Protocol
from apigen.generator.types import Command as CommandDef


def protocol(*commands):
    return Protocol(
        name="P",
        commands=tuple(
            CommandDef(name=name, protocol="P", direction=Direction.REQUEST, fields=(), opcode=op)
            for name, op in commands
        ),
    )


def describe_resolve_opcodes():
    def numbers_commands_in_declaration_order(expect):
        table = resolve_opcodes(protocol(("A", None), ("B", None), ("C", None)))
        expect([(e.command, e.opcode) for e in table.entries]) == [("A", 0), ("B", 1), ("C", 2)]

    def skips_explicit_opcodes(expect):
        table = resolve_opcodes(protocol(("A", 0), ("B", None), ("C", 2), ("D", None)))
        expect([e.opcode for e in table.entries]) == [0, 1, 2, 3]

    def fills_gaps_below_explicit_opcodes(expect):
        table = resolve_opcodes(protocol(("A", 5), ("B", None), ("C", None)))
        expect([e.opcode for e in table.entries]) == [5, 0, 1]

    def rejects_explicit_collision_with_auto_opcode(expect):
        with pytest.raises(DuplicateOpcodeError) as exc:
            resolve_opcodes(protocol(("A", 5), ("B", None), ("C", 0)))
        expect(exc.value.opcode) == 0
        expect(exc.value.commands) == ("B", "C")
        expect(exc.value.protocol) == "P"

    def rejects_duplicate_explicit_opcodes(expect):
        with pytest.raises(DuplicateOpcodeError):
            resolve_opcodes(protocol(("A", 7), ("B", 7)))

    def handles_empty_protocols(expect):
        table = resolve_opcodes(protocol())
        expect(table.entries) == ()

    def looks_up_both_ways(expect):
        table = resolve_opcodes(protocol(("A", 9), ("B", None)))
        expect(table.opcode("A")) == 9
        expect(table.command(0)) == "B"
        with pytest.raises(KeyError):
            table.command(3)


def describe_compiled_protocols():
    def numbers_each_protocol_separately(expect):
        compiled = compile_schema(
            """
            definitions d {
                protocol First { request A {} request B {} }
                protocol Second { request C {} }
            }
            """
        )
        expect(compiled.opcode("B")) == 1
        expect(compiled.opcode("C")) == 0

    def reports_collisions_from_schema(expect):
        with pytest.raises(DuplicateOpcodeError):
            compile_schema(
                "definitions d { protocol P { request A = 5 {} request B {} request C = 0 {} } }"
            )

    def serializes_dispatch_tables(expect):
        compiled = compile_schema("definitions d { protocol P { request A = 3 {} } }")
        expect(compiled.dispatch["P"].to_dict()) == {
            "protocol": "P",
            "entries": [{"opcode": 3, "command": "A"}],
        }
