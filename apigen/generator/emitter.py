"""Render every generated file of an API and write them out."""

import logging
from pathlib import Path

from . import cheader, ffi, irdump, python
from .compiler import CompiledApi
from .types import GeneratedFileSpec, OutputKind

logger = logging.getLogger(__name__)


def render_file(
    compiled: CompiledApi, spec: GeneratedFileSpec, runtime_import: str | None = None
) -> str:
    """Render one generated file.

    The runtime import path comes from runtime_import, then the file's own
    runtime option, then the default runtime package name.
    """
    selection = compiled.api.select(spec.definitions)
    runtime = runtime_import or spec.runtime or python.DEFAULT_RUNTIME_IMPORT

    if spec.kind == OutputKind.CODEC:
        return python.render_selection(compiled, selection, spec.includes, runtime)
    if spec.kind == OutputKind.HEADER:
        return cheader.render_selection(compiled, selection, spec.file_name, spec.includes)
    if spec.kind == OutputKind.FFI:
        return ffi.render_selection(compiled, selection, spec.includes, runtime)
    return irdump.render(compiled, spec.definitions)


def render_all(compiled: CompiledApi, runtime_import: str | None = None) -> dict[str, str]:
    """Render every generated file, keyed by its relative path."""
    files: dict[str, str] = {}
    for spec in compiled.api.generated_files:
        logger.debug("rendering %s (%s)", spec.path, spec.kind)
        files[spec.path] = render_file(compiled, spec, runtime_import)
    return files


def write_files(files: dict[str, str], out_dir: Path) -> list[Path]:
    """Write rendered files below out_dir, creating directories as needed."""
    out_dir = out_dir.resolve()
    written: list[Path] = []
    for relative, content in files.items():
        path = out_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info("wrote %s", path)
        written.append(path)
    return written


def emit(compiled: CompiledApi, out_dir: Path, runtime_import: str | None = None) -> list[Path]:
    """Render all files first, then write them; nothing is written on failure."""
    files = render_all(compiled, runtime_import)
    return write_files(files, out_dir)
