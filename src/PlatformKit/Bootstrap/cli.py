# === NAVMAP v1 ===
# {
#   "module": "PlatformKit.Bootstrap.cli",
#   "purpose": "Typer CLI for booting handlers and inspecting manifests and configuration",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "run", "name": "run", "anchor": "function-run", "kind": "function"},
#     {"id": "manifests", "name": "manifests", "anchor": "function-manifests", "kind": "function"},
#     {"id": "config-check", "name": "config_check", "anchor": "function-config-check", "kind": "function"},
#     {"id": "version-cmd", "name": "version_cmd", "anchor": "function-version-cmd", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Command line interface for the PlatformKit bootstrap.

Example:
    $ platformkit --platform-root /srv/site manifests --format json
    $ platformkit --platform-root /srv/site run web
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .application import Application
from .cache import CacheBin
from .configuration import Configuration
from .errors import BootstrapError
from .manifest import ApplicationManifests
from .settings import BootOptions, PlatformSettings, get_default_settings

_console = Console()

app = typer.Typer(
    name="platformkit",
    help="PlatformKit CLI - boot application handlers and inspect platform metadata",
    no_args_is_help=True,
)


class CliContext:
    """Shared state for one CLI invocation."""

    def __init__(self, platform_root: Optional[Path] = None, verbosity: int = 0) -> None:
        self.verbosity = verbosity
        self.console = _console
        if platform_root is not None:
            self.settings = PlatformSettings(platform_root=platform_root)
        else:
            self.settings = get_default_settings()

    def log_debug(self, message: str) -> None:
        if self.verbosity >= 1:
            self.console.print(f"[dim]DEBUG: {message}[/dim]")


_context: Optional[CliContext] = None


def get_context() -> CliContext:
    if _context is None:
        raise RuntimeError("CLI context not initialized")
    return _context


@app.callback(invoke_without_command=False)
def main(
    platform_root: Optional[Path] = typer.Option(
        None,
        "--platform-root",
        "-r",
        envvar="PLATFORMKIT_PLATFORM_ROOT",
        help="Platform root directory (app/, conf/, lib/, web/ live beneath it)",
    ),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase verbosity"),
) -> None:
    """PlatformKit CLI - boot handlers and inspect manifests and configuration."""

    global _context

    _context = CliContext(platform_root=platform_root, verbosity=verbosity)
    _context.log_debug(f"Platform root: {_context.settings.platform_root}")


@app.command()
def run(
    handler: str = typer.Argument(..., help="Name of the handler to run"),
    skip_configuration: bool = typer.Option(
        False, "--skip-configuration", help="Do not load conf/*.xml before running"
    ),
) -> None:
    """Boot the application for HANDLER and run it."""

    ctx = get_context()
    options = BootOptions(settings=ctx.settings, load_configuration=not skip_configuration)
    try:
        application = Application.init(handler, options)
        result = application.run()
    except BootstrapError as exc:
        ctx.console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1)
    finally:
        Application.reset()
    if result is not None:
        typer.echo(result if isinstance(result, str) else json.dumps(result, default=str))


def _manifest_rows(manifests: ApplicationManifests) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for reader in manifests.scanner.readers:
        data = reader.data or {}
        handlers = data.get("handler") or []
        if not isinstance(handlers, list):
            handlers = [handlers]
        rows.append(
            {
                "path": str(reader.path),
                "valid": bool(data),
                "name": data.get("@name"),
                "version": data.get("@version"),
                "handlers": [entry.get("@name") for entry in handlers if isinstance(entry, dict)],
            }
        )
    return rows


@app.command()
def manifests(
    format_output: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """List package manifests found beneath the application root."""

    ctx = get_context()
    rows = _manifest_rows(ApplicationManifests(ctx.settings.app_root))
    if format_output == "json":
        typer.echo(json.dumps(rows, indent=2))
        return
    if format_output != "table":
        ctx.console.print(f"[red]Unknown format '{format_output}'[/red]")
        raise typer.Exit(2)

    table = Table(title=f"Manifests in {ctx.settings.app_root}")
    table.add_column("Package")
    table.add_column("Version")
    table.add_column("Handlers")
    table.add_column("Path")
    for row in rows:
        name = row["name"] or ("-" if row["valid"] else "[red]invalid[/red]")
        table.add_row(name, row["version"] or "-", ", ".join(row["handlers"]), row["path"])
    ctx.console.print(table)


@app.command("config-check")
def config_check(
    path: Optional[Path] = typer.Argument(
        None, help="Configuration file or directory; defaults to the platform conf/ directory"
    ),
) -> None:
    """Load configuration through the built-in components and report the result."""

    ctx = get_context()
    target = path or ctx.settings.conf_root
    cache_bins = CacheBin(ctx.settings.cache.directory or ctx.settings.platform_root / "cache")
    configuration = Configuration()
    configuration.register(cache_bins)
    try:
        if target.is_file():
            configuration.load_file(target)
        else:
            configuration.load_directory(target)
    except BootstrapError as exc:
        ctx.console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1)

    if not configuration.sources:
        ctx.console.print(f"[yellow]No configuration files found in {target}[/yellow]")
        return
    for source in configuration.sources:
        ctx.console.print(f"[green]✓[/green] {source}")
    bins = cache_bins.configured_bins()
    ctx.console.print(f"Cache bins: {', '.join(bins) if bins else '(none)'}")


@app.command("version")
def version_cmd() -> None:
    """Show version information."""

    typer.echo(f"platformkit {__version__}")


def cli_main(argv: Optional[List[str]] = None) -> None:
    """Console-script entry point."""

    app(args=argv)


__all__ = ["app", "CliContext", "cli_main", "get_context", "main"]
