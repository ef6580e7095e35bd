"""CLI interface for entity-mapper."""

import dataclasses
import importlib
import json
from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import EngineConfig
from .engine import ExtractionEngine
from .errors import ExtractionError
from .html import parse_html
from .logging import configure_logging

app = typer.Typer(
    name="entity-mapper",
    help="Extract typed entities from HTML documents",
    add_completion=False,
)
console = Console()


def get_config() -> EngineConfig:
    """Load configuration from the environment (and a local .env)."""
    from dotenv import load_dotenv

    load_dotenv()
    try:
        return EngineConfig()
    except ValueError as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        raise typer.Exit(2)


def load_entity_class(target: str) -> type:
    """Resolve ``package.module:ClassName``."""
    module_name, sep, class_name = target.partition(":")
    if not sep or not module_name or not class_name:
        raise typer.BadParameter(f"Expected module:Class, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import {module_name!r}: {e}") from e
    try:
        return getattr(module, class_name)
    except AttributeError:
        raise typer.BadParameter(f"{module_name!r} has no attribute {class_name!r}") from None


def _to_jsonable(value):
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, date):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if hasattr(value, "__dict__"):
        return {k: _to_jsonable(v) for k, v in vars(value).items() if not k.startswith("_")}
    return str(value)


@app.command()
def extract(
    page: Path = typer.Argument(..., exists=True, dir_okay=False, help="HTML file to extract from"),
    entity: str = typer.Option(..., "--entity", "-e", help="Target class as module:Class"),
    url: str = typer.Option(None, "--url", "-u", help="Source URL of the page"),
    output: Path = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout"),
):
    """Extract one entity from an HTML file and print it as JSON."""
    config = get_config()
    configure_logging(config.log_level)

    entity_class = load_entity_class(entity)
    engine = ExtractionEngine(config=config)
    root = parse_html(page.read_text(encoding="utf-8"))

    try:
        instance = engine.extract(root, entity_class, source_url=url)
    except ExtractionError as e:
        console.print(f"[red]Extraction failed ({type(e).__name__}):[/red] {escape(str(e))}")
        raise typer.Exit(1)

    payload = json.dumps(_to_jsonable(instance), indent=2, ensure_ascii=False)
    if output:
        output.write_text(payload, encoding="utf-8")
        console.print(f"[green]Saved to {output}[/green]")
    else:
        typer.echo(payload)


@app.command()
def describe(
    entity: str = typer.Argument(..., help="Target class as module:Class"),
):
    """Show the extraction fields declared on a class."""
    entity_class = load_entity_class(entity)
    engine = ExtractionEngine(config=get_config())
    try:
        descriptor = engine.describe(entity_class)
    except ExtractionError as e:
        console.print(f"[red]Invalid entity ({type(e).__name__}):[/red] {escape(str(e))}")
        raise typer.Exit(1)

    table = Table(title=descriptor.name)
    table.add_column("Field", style="cyan")
    table.add_column("Kind")
    table.add_column("Cardinality")
    table.add_column("Optional")
    table.add_column("Location")
    table.add_column("Pipeline")
    for field in descriptor.fields:
        pipeline = field.entity.__name__ if field.nested else f"{field.transformer_ref} -> {field.converter_ref}"
        table.add_row(
            field.name,
            field.kind.value,
            field.cardinality.value,
            "yes" if field.optional else "no",
            escape(field.describe()),
            pipeline,
        )
    console.print(table)


@app.command()
def converters():
    """List registered transformers and converters."""
    registry = ExtractionEngine().conversions
    console.print("[bold]Transformers:[/bold] " + ", ".join(registry.list_transformers()))
    console.print("[bold]Converters:[/bold] " + ", ".join(registry.list_converters()))


if __name__ == "__main__":
    app()
