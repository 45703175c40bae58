"""JSON dump of the compiled API."""

import json
from typing import Any

from .compiler import CompiledApi
from .layout import RecordLayout
from .types import Selection


def _layout_dict(layout: RecordLayout) -> dict[str, Any]:
    data = layout.to_dict()
    data["min_size"] = layout.min_size
    data["static"] = layout.is_static
    return data


def to_dict(
    compiled: CompiledApi, definitions: tuple[str, ...] | list[str] | None = None
) -> dict[str, Any]:
    """Dump the entities of the named definitions blocks; all of them by default."""
    api = compiled.api
    names = list(definitions) if definitions is not None else list(api.definitions)
    selection: Selection = api.select(names)
    records = [r.name for r in selection.records] + [c.name for c in selection.commands]

    return {
        "api": {
            "name": api.name,
            "version": api.version,
            "copyright": api.copyright.to_dict() if api.copyright is not None else None,
            "definitions": {name: api.definitions[name].to_dict() for name in names},
            "constants": {c.name: c.to_dict() for c in selection.constants},
            "enums": {e.name: e.to_dict() for e in selection.enums},
            "objects": {o.name: o.to_dict() for o in selection.objects},
            "structs": {
                r.name: r.to_dict() for r in selection.records if r.name in api.structs
            },
            "extensible_structs": {
                r.name: r.to_dict()
                for r in selection.records
                if r.name in api.extensible_structs
            },
            "functions": {f.name: f.to_dict() for f in selection.functions},
            "protocols": {p.name: p.to_dict() for p in selection.protocols},
        },
        "layouts": {name: _layout_dict(compiled.layouts[name]) for name in records},
        "dispatch": {p.name: compiled.dispatch[p.name].to_dict() for p in selection.protocols},
    }


def render(
    compiled: CompiledApi, definitions: tuple[str, ...] | list[str] | None = None
) -> str:
    """Render the API, its layouts and dispatch tables as JSON."""
    return json.dumps(to_dict(compiled, definitions), indent=2) + "\n"
