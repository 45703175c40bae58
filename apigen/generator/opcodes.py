"""Opcode assignment for protocol commands."""

import logging
from dataclasses import dataclass

from dataclasses_json import DataClassJsonMixin

from .errors import DuplicateOpcodeError
from .types import Api, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchEntry(DataClassJsonMixin):
    opcode: int
    command: str


@dataclass(frozen=True)
class DispatchTable(DataClassJsonMixin):
    """Opcode to command mapping of one protocol, in declaration order."""

    protocol: str
    entries: tuple[DispatchEntry, ...]

    def opcode(self, command: str) -> int:
        for entry in self.entries:
            if entry.command == command:
                return entry.opcode
        raise KeyError(command)

    def command(self, opcode: int) -> str:
        for entry in self.entries:
            if entry.opcode == opcode:
                return entry.command
        raise KeyError(opcode)


def resolve_opcodes(protocol: Protocol) -> DispatchTable:
    """Assign opcodes to the commands of one protocol.

    Commands are visited in declaration order. An explicit opcode is taken
    as written; any other command gets the smallest non-negative value not
    used so far. A later explicit opcode may therefore collide with an
    earlier automatic one, which is reported like any other collision.
    """
    used: dict[int, str] = {}
    entries: list[DispatchEntry] = []
    next_free = 0

    for command in protocol.commands:
        if command.opcode is not None:
            opcode = command.opcode
        else:
            while next_free in used:
                next_free += 1
            opcode = next_free

        if opcode in used:
            raise DuplicateOpcodeError(protocol.name, opcode, (used[opcode], command.name))
        used[opcode] = command.name
        entries.append(DispatchEntry(opcode, command.name))

    logger.debug("protocol %s: %d opcodes", protocol.name, len(entries))
    return DispatchTable(protocol.name, tuple(entries))


def resolve_protocols(api: Api) -> dict[str, DispatchTable]:
    """Resolve opcodes for every protocol of api."""
    return {name: resolve_opcodes(protocol) for name, protocol in api.protocols.items()}
