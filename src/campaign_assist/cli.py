"""CLI for campaign-assist (content conversion, patching, MCP server)."""

import json
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from campaign_assist.core.citations.parser import parse_citations, strip_citations
from campaign_assist.core.content.markdown import markdown_to_document
from campaign_assist.core.content.render import document_to_markdown
from campaign_assist.core.content.text import extract_plain_text, plain_text_to_document
from campaign_assist.core.patch.errors import PatchApplicationError, PatchParseError
from campaign_assist.core.patch.json_patch import apply_json_patch, parse_json_patch
from campaign_assist.core.patch.unified_diff import apply_unified_diff, create_unified_diff
from campaign_assist.logging_config import configure_logging
from campaign_assist.models.document import (
    DocumentFormatError,
    document_to_json,
    dumps_document,
    loads_document,
)

app = typer.Typer(help="Campaign assist: rich-text conversion, patching and the MCP server.")

InputFile = Annotated[typer.FileText, typer.Argument(help="Input file ('-' for stdin)")]


def _read_json(text: str, what: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("{} is not valid JSON: {}", what, e)
        raise typer.Exit(1) from e


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


@app.command(name="to-markdown")
def to_markdown(source: InputFile = "-") -> None:  # type: ignore[assignment]
    """Render stored document JSON as Markdown."""
    try:
        doc = loads_document(source.read())
    except (json.JSONDecodeError, DocumentFormatError) as e:
        logger.error("Not a stored document: {}", e)
        raise typer.Exit(1) from e
    typer.echo(document_to_markdown(doc))


@app.command(name="from-markdown")
def from_markdown(
    source: InputFile = "-",  # type: ignore[assignment]
    plain: bool = typer.Option(False, "--plain", "-p", help="Treat input as plain text"),
    pretty: bool = typer.Option(False, "--pretty", help="Indent the JSON output"),
) -> None:
    """Convert Markdown (or plain text) to stored document JSON."""
    text = source.read()
    doc = plain_text_to_document(text) if plain else markdown_to_document(text)
    if pretty:
        typer.echo(json.dumps(document_to_json(doc), indent=2, ensure_ascii=False))
    else:
        typer.echo(dumps_document(doc))


@app.command(name="plain-text")
def plain_text(source: InputFile = "-") -> None:  # type: ignore[assignment]
    """Flatten stored document JSON to plain text."""
    typer.echo(extract_plain_text(source.read()))


@app.command()
def diff(
    original: Annotated[Path, typer.Argument(help="Original text file")],
    modified: Annotated[Path, typer.Argument(help="Modified text file")],
) -> None:
    """Print a unified diff between two text files."""
    typer.echo(
        create_unified_diff(
            original.read_text(encoding="utf-8"),
            modified.read_text(encoding="utf-8"),
            name=original.name,
        )
    )


@app.command(name="apply-diff")
def apply_diff(
    original: Annotated[Path, typer.Argument(help="Text file to patch")],
    patch: Annotated[Path, typer.Argument(help="Unified diff file")],
) -> None:
    """Apply a unified diff to a text file and print the result."""
    try:
        result = apply_unified_diff(
            original.read_text(encoding="utf-8"), patch.read_text(encoding="utf-8")
        )
    except PatchApplicationError as e:
        logger.error("{}", e.message)
        raise typer.Exit(1) from e
    typer.echo(result, nl=False)


@app.command(name="apply-json-patch")
def apply_json_patch_cmd(
    document: Annotated[Path, typer.Argument(help="JSON document file")],
    patch: Annotated[Path, typer.Argument(help="RFC 6902 JSON Patch file")],
) -> None:
    """Apply a JSON Patch to a JSON document and print the result."""
    data = _read_json(document.read_text(encoding="utf-8"), str(document))
    try:
        operations = parse_json_patch(patch.read_text(encoding="utf-8"))
        result = apply_json_patch(data, operations)
    except PatchParseError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    except PatchApplicationError as e:
        logger.error("{}", e.message)
        raise typer.Exit(1) from e
    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))


@app.command()
def citations(
    source: InputFile = "-",  # type: ignore[assignment]
    strip: bool = typer.Option(False, "--strip", "-s", help="Print text with citations replaced by names"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """List entity citations found in text."""
    text = source.read()
    if strip:
        typer.echo(strip_citations(text), nl=False)
        return

    found = parse_citations(text)
    if output_json:
        data = [
            {
                "entity_type": c.entity_type,
                "entity_id": c.entity_id,
                "display_name": c.display_name,
                "start": c.start_index,
                "end": c.end_index,
            }
            for c in found
        ]
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    typer.echo(f"{len(found)} citations:")
    for c in found:
        typer.echo(f"  {c.display_name} ({c.entity_type}) id={c.entity_id}")


@app.command()
def serve() -> None:
    """Run the MCP server over stdio."""
    from campaign_assist.mcp.server import run_mcp_server

    run_mcp_server()
