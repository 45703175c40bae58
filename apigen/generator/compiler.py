"""Front half of the pipeline: text in, fully resolved API out."""

import logging
from dataclasses import dataclass

from .catalog import build_catalog
from .layout import RecordLayout, plan_layouts
from .opcodes import DispatchTable, resolve_protocols
from .parser import parse
from .types import Api

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledApi:
    """A resolved API together with its layouts and dispatch tables."""

    api: Api
    layouts: dict[str, RecordLayout]
    dispatch: dict[str, DispatchTable]

    def layout(self, name: str) -> RecordLayout:
        return self.layouts[name]

    def opcode(self, command: str) -> int:
        protocol = self.api.command(command).protocol
        return self.dispatch[protocol].opcode(command)


def compile_schema(text: str) -> CompiledApi:
    """Parse, resolve, lay out and number a schema document.

    Raises a ValidationError subclass for any malformed schema; nothing is
    returned until every stage has succeeded.
    """
    document = parse(text)
    api = build_catalog(document)
    layouts = plan_layouts(api)
    dispatch = resolve_protocols(api)
    logger.debug(
        "compiled api %s: %d records, %d protocols", api.name, len(layouts), len(dispatch)
    )
    return CompiledApi(api, layouts, dispatch)
