"""Stepwise CLI — the user interface.

Commands:
    stepwise run      — Resolve and run a template, print its exports as JSON
    stepwise show     — Resolve a template and print its step tree
    stepwise list     — List template files in the templates directory
    stepwise version  — Print the installed version
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from stepwise.config import settings
from stepwise.errors import StepwiseError, format_error
from stepwise.utils import setup_logging

# Initialize logging on import
setup_logging()

app = typer.Typer(
    name="stepwise",
    help="Stepwise — declarative HTTP workflow templates",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)


def _fail(exc: BaseException) -> None:
    err_console.print(f"error: {format_error(exc)}", style="red", markup=False, highlight=False)
    raise typer.Exit(1)


async def _with_decoder(kind: str | None, action):
    """Run ``action(decoder)`` and release the store pool if one was opened."""
    from stepwise.tools.template_store import TemplateStore
    from stepwise.workflow.runner import make_decoder

    store = TemplateStore() if (kind or settings.decoder).lower() == "store" else None
    decoder = make_decoder(kind, store=store)
    try:
        return await action(decoder)
    finally:
        if store is not None:
            await store.close()


# ── stepwise run ──────────────────────────────────────────────


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def run(
    ctx: typer.Context,
    template: str = typer.Argument(..., help="Template path (file decoder) or author/namespace@vX.Y.Z"),
    decoder: str = typer.Option(None, "--decoder", "-d", help="Template source: file | store"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Overall deadline in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every step at debug level"),
):
    """▶ Run a template. Extra [bold]--name=value[/] arguments override its env."""
    if verbose:
        setup_logging("debug")
    from stepwise.workflow.runner import parse_overrides, run_template

    overrides = parse_overrides(ctx.args)
    deadline = timeout if timeout is not None else settings.run_timeout

    async def action(dec):
        return await asyncio.wait_for(run_template(template, overrides, decoder=dec), deadline)

    try:
        _, out = asyncio.run(_with_decoder(decoder, action))
    except asyncio.TimeoutError:
        err_console.print(f"error: run exceeded {deadline}s deadline", style="red", markup=False)
        raise typer.Exit(1)
    except (StepwiseError, ValueError) as exc:
        _fail(exc)
        return

    typer.echo(json.dumps(out, indent=2, ensure_ascii=False, default=str))


# ── stepwise show ─────────────────────────────────────────────


@app.command()
def show(
    template: str = typer.Argument(..., help="Template path (file decoder) or author/namespace@vX.Y.Z"),
    decoder: str = typer.Option(None, "--decoder", "-d", help="Template source: file | store"),
):
    """🌲 Resolve a template and print its step tree."""
    from stepwise.workflow.resolver import Resolver

    async def action(dec):
        return await Resolver(dec).resolve(template)

    try:
        resolved = asyncio.run(_with_decoder(decoder, action))
    except (StepwiseError, ValueError) as exc:
        _fail(exc)
        return

    if resolved.description:
        console.print(resolved.description, style="dim", markup=False)
    console.print(resolved.describe(), markup=False, highlight=False)


# ── stepwise list ─────────────────────────────────────────────


@app.command("list")
def list_command(
    directory: Path = typer.Argument(None, help="Directory to scan (default: templates_dir)"),
):
    """📂 List template files, newest first."""
    from stepwise.workflow.runner import list_templates

    files = list_templates(directory)
    if not files:
        console.print("[yellow]No templates found.[/]")
        return

    table = Table(title=f"Templates  ({directory or settings.templates_dir})")
    table.add_column("File", style="cyan")
    table.add_column("Modified", style="yellow")
    for f in files:
        modified = datetime.fromtimestamp(f.stat().st_mtime).strftime("%Y-%m-%d %H:%M")
        table.add_row(f.name, modified)
    console.print(table)


# ── stepwise version ──────────────────────────────────────────


@app.command()
def version():
    """Print the Stepwise version."""
    from stepwise import __version__

    console.print(f"stepwise {__version__}")


if __name__ == "__main__":
    app()
