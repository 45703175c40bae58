"""Command-line interface for apigen code generation."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from apigen.generator import python
from apigen.generator.compiler import CompiledApi, compile_schema
from apigen.generator.emitter import emit
from apigen.generator.errors import ApiGenError
from apigen.generator.layout import RecordLayout


def _fail(err: Exception) -> NoReturn:
    console = Console(stderr=True)
    console.print(f"[bold red]error:[/bold red] {escape(str(err))}")
    sys.exit(1)


def _setup_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True))],
    )


def _compile(filename: str) -> CompiledApi:
    with open(filename, encoding="utf-8") as f:
        text = f.read()
    try:
        return compile_schema(text)
    except ApiGenError as err:
        _fail(err)


@click.group()
def cli() -> None:
    """apigen schema compiler."""


@cli.command()
@click.option(
    "--filename",
    "-f",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Input schema file",
)
@click.option("--out-dir", "-o", "out_dir", required=True, help="Output directory")
@click.option(
    "--runtime-import",
    "runtime_import",
    default=None,
    help="Import path of the runtime package used by generated Python code",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log progress")
def gen(filename: str, out_dir: str, runtime_import: str | None, verbose: bool) -> None:
    """Generate every file the schema declares."""
    _setup_logging(verbose)
    compiled = _compile(filename)

    out_path = Path(out_dir).resolve()
    out_path.mkdir(parents=True, exist_ok=True)
    try:
        written = emit(compiled, out_path, runtime_import)
    except ApiGenError as err:
        _fail(err)

    console = Console()
    for path in written:
        console.print(f"Generated {escape(str(path))}")


@cli.command()
@click.option("--out-dir", "-o", "out_dir", default=".", help="Output directory")
@click.option("--name", default=python.DEFAULT_RUNTIME_IMPORT, help="Runtime package name")
def runtime(out_dir: str, name: str) -> None:
    """Write the Python runtime package used by generated code."""
    runtime_dir = Path(out_dir).resolve() / name
    runtime_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in python.runtime().items():
        (runtime_dir / filename).write_text(content, encoding="utf-8")
    print(f"Generated Python runtime in {runtime_dir}")


@cli.command()
@click.option(
    "--filename",
    "-f",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Input schema file",
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(filename: str, output_json: bool) -> None:
    """Display record layouts and opcode tables."""
    compiled = _compile(filename)

    if output_json:
        _output_json(compiled)
    else:
        _output_plain(compiled)


def _size_text(layout: RecordLayout) -> str:
    if layout.is_static:
        return f"{layout.min_size} bytes"
    return f"{layout.min_size}+ bytes"


def _output_json(compiled: CompiledApi) -> None:
    """Output layout info as JSON."""
    data: dict = {"api": compiled.api.name, "records": {}, "protocols": {}}

    for name, layout in compiled.layouts.items():
        data["records"][name] = {
            "kind": str(layout.kind),
            "min_size": layout.min_size,
            "static": layout.is_static,
            "pointer_fields": [p.field.name for p in layout.payloads],
        }

    for name, table in compiled.dispatch.items():
        data["protocols"][name] = {entry.command: entry.opcode for entry in table.entries}

    print(json.dumps(data, indent=2))


def _output_plain(compiled: CompiledApi) -> None:
    """Output layout info using rich text formatting."""
    console = Console()
    api = compiled.api

    console.print(f"[bold cyan]API[/bold cyan] {escape(api.name)}")
    api_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
    api_table.add_column("Label", style="dim")
    api_table.add_column("Value", style="white")
    api_table.add_row("Version", str(api.version) if api.version is not None else "-")
    api_table.add_row("Definitions", ", ".join(api.definitions) or "-")
    api_table.add_row("Generated files", str(len(api.generated_files)))
    console.print(api_table)
    console.print()

    console.print("[bold cyan]Records[/bold cyan]")
    record_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    record_table.add_column("Name", style="white")
    record_table.add_column("Kind", style="dim")
    record_table.add_column("Size", style="yellow", justify="right")
    record_table.add_column("Align", style="yellow", justify="right")
    record_table.add_column("Pointer fields", style="green")

    for name, layout in compiled.layouts.items():
        pointers = ", ".join(p.field.name for p in layout.payloads)
        record_table.add_row(
            name, str(layout.kind), _size_text(layout), str(layout.align), pointers
        )

    console.print(record_table)

    for name, table in compiled.dispatch.items():
        protocol = api.protocols[name]
        console.print()
        console.print(f"[bold cyan]Protocol {escape(name)}[/bold cyan]")
        opcode_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        opcode_table.add_column("Opcode", style="green", justify="right")
        opcode_table.add_column("Command", style="white")
        opcode_table.add_column("Direction", style="dim")
        opcode_table.add_column("Size", style="yellow", justify="right")
        directions = {c.name: str(c.direction) for c in protocol.commands}
        for entry in table.entries:
            layout = compiled.layouts[entry.command]
            opcode_table.add_row(
                str(entry.opcode), entry.command, directions[entry.command], _size_text(layout)
            )
        console.print(opcode_table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
