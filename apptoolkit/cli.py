"""Thin CLI wrapper for apptoolkit.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.markup import escape

from apptoolkit import __version__
from apptoolkit.config import Settings, get_settings, print_settings_json
from apptoolkit.log_config import setup_logging

if TYPE_CHECKING:
    from apptoolkit.imagecache.service import ImageCache

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

app = typer.Typer(
    name="apptoolkit",
    help="App Toolkit - image cache and release build matrix helpers",
    no_args_is_help=True,
    context_settings=CONTEXT_SETTINGS,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"apptoolkit version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """App Toolkit - image cache and release build matrix helpers."""
    level = "DEBUG" if verbose else get_settings().log_level
    setup_logging(level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True)
        return

    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Image cache:[/bold]")
    console.print(f"  Cache directory:     {settings.cache_dir}")
    console.print(f"  Assets directory:    {settings.assets_dir}")
    console.print(f"  Max cache size:      {settings.max_cache_size_bytes:,} bytes")
    console.print(f"  Max age (days):      {settings.max_age_days}")
    console.print(f"  Max memory items:    {settings.max_memory_cache_items}")
    console.print(f"  Strict LRU memory:   {settings.memory_strict_lru}")
    console.print(f"  Fetch timeout:       {settings.fetch_timeout}")
    console.print()
    console.print("[bold]Build matrix:[/bold]")
    console.print(f"  Project directory:   {settings.project_dir}")
    console.print(f"  Builds directory:    {settings.resolved_builds_dir()}")
    console.print(f"  Build tool:          {settings.build_tool}")
    console.print(f"  Prep commands:       {'; '.join(settings.prep_commands)}")
    console.print(f"  Run codegen:         {settings.run_codegen}")
    flavors = ", ".join(f"{k}={v}" for k, v in settings.default_flavors.items())
    console.print(f"  Default flavors:     {flavors}")
    console.print(f"  Default build types: {', '.join(settings.default_build_types)}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")


@app.command()
def build(
    use_defaults: Annotated[
        bool,
        typer.Option("--use-defaults", help="Skip prompts and use default flavors"),
    ] = False,
    no_flavor: Annotated[
        bool,
        typer.Option("--no-flavor", help="Build by type only, without flavors"),
    ] = False,
    matrix_file: Annotated[
        Path | None,
        typer.Option("--matrix", "-m", help="Read flavors/build types from a file"),
    ] = None,
    project_dir: Annotated[
        Path | None,
        typer.Option("--project-dir", "-C", help="Project root to build in"),
    ] = None,
    codegen: Annotated[
        bool,
        typer.Option("--codegen", help="Run the code generator before building"),
    ] = False,
    no_open: Annotated[
        bool,
        typer.Option("--no-open", help="Do not open the output directory"),
    ] = False,
) -> None:
    """Build every flavor x build type combination.

    Without --use-defaults or --matrix, prompts for the number of flavors,
    each flavor's name and entry point, and the build types to generate.
    Outputs are copied to builds/<timestamp>/[<flavor>-<type>]/.
    Any failing command aborts the whole run.
    """
    from apptoolkit.builds.inputs import (
        InvalidInputError,
        defaults_provider,
        file_provider,
        interactive_provider,
        validate_entry_points,
    )
    from apptoolkit.builds.models import TargetResult
    from apptoolkit.builds.runner import ExternalCommandError, read_log_tail
    from apptoolkit.builds.service import run_matrix

    if matrix_file is not None and use_defaults:
        err_console.print(
            "[red]Error: --matrix and --use-defaults cannot be used together[/red]"
        )
        raise typer.Exit(code=2)

    settings = get_settings()
    updates: dict[str, object] = {}
    if project_dir is not None:
        updates["project_dir"] = project_dir
    if codegen:
        updates["run_codegen"] = True
    if updates:
        settings = settings.model_copy(update=updates)

    use_flavors = not no_flavor

    try:
        if matrix_file is not None:
            matrix = file_provider(matrix_file, use_flavors=False if no_flavor else None)
            validate_entry_points(matrix, settings.project_dir)
        elif use_defaults:
            matrix = defaults_provider(settings, use_flavors=use_flavors)
            validate_entry_points(matrix, settings.project_dir)
        else:
            matrix = interactive_provider(
                prompt=lambda text: str(typer.prompt(text)),
                echo=typer.echo,
                base_dir=settings.project_dir,
                use_flavors=use_flavors,
            )
    except InvalidInputError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    def report(result: TargetResult) -> None:
        console.print(
            f"[green]✓ Build completed for {result.target.flavor_name} flavor "
            f"and type {result.target.build_type.value}[/green]"
        )

    console.print(
        "[blue]Cleaning, fetching dependencies, and running build processes...[/blue]"
    )

    try:
        run = run_matrix(matrix, settings, on_target_done=report)
    except ExternalCommandError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        if e.log_path is not None:
            tail = read_log_tail(e.log_path)
            if tail:
                err_console.print(escape(tail))
            err_console.print(f"See log: {escape(str(e.log_path))}")
        exit_code = e.exit_code if e.exit_code and e.exit_code > 0 else 1
        raise typer.Exit(code=exit_code) from None

    console.print()
    console.print("[bold]All builds completed successfully![/bold]")
    for result in run.targets:
        console.print(f"  {escape(str(result.output_dir))}")
    console.print(f"Builds are in {escape(str(run.root))}")

    if settings.open_output and not no_open:
        typer.launch(str(run.root))


cache_app = typer.Typer(help="Manage the image cache", context_settings=CONTEXT_SETTINGS)
app.add_typer(cache_app, name="cache")


def _open_cache(
    settings: Settings | None = None,
    initial_cleanup: bool = True,
) -> "ImageCache":
    from apptoolkit.imagecache.service import ImageCache

    return ImageCache.from_settings(
        settings or get_settings(), initial_cleanup=initial_cleanup
    )


def _emit_payload(key: str, data: bytes, output: Path | None) -> None:
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
        console.print(f"[green]Wrote {len(data):,} bytes to {escape(str(output))}[/green]")
    else:
        console.print(f"{key}  {len(data):,} bytes")


@cache_app.command("fetch")
def cache_fetch(
    url: Annotated[str, typer.Argument(help="Image URL")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the payload to a file"),
    ] = None,
) -> None:
    """Return an image from the cache, downloading it on a miss."""
    from apptoolkit.imagecache.cache_key import derive_key
    from apptoolkit.imagecache.fetch import FetchError

    with _open_cache() as cache:
        try:
            data = cache.cache_from_url(url)
        except FetchError as e:
            err_console.print(f"[red]Fetch failed ({e.code}): {escape(str(e))}[/red]")
            raise typer.Exit(code=1) from None
        _emit_payload(derive_key(url), data, output)


@cache_app.command("asset")
def cache_asset(
    path: Annotated[str, typer.Argument(help="Asset path relative to the assets dir")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the payload to a file"),
    ] = None,
) -> None:
    """Return a bundled asset from the cache, loading it on a miss."""
    from apptoolkit.imagecache.cache_key import derive_key
    from apptoolkit.imagecache.fetch import AssetNotFoundError

    with _open_cache() as cache:
        try:
            data = cache.cache_from_asset(path)
        except AssetNotFoundError as e:
            err_console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(code=1) from None
        _emit_payload(derive_key(path), data, output)


@cache_app.command("get")
def cache_get(
    key: Annotated[str, typer.Argument(help="Cache key, URL or asset path")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the payload to a file"),
    ] = None,
) -> None:
    """Look up a cached payload without fetching."""
    from apptoolkit.imagecache.cache_key import derive_key, is_cache_key

    cache_key = key if is_cache_key(key) else derive_key(key)
    with _open_cache() as cache:
        data = cache.get_from_cache(cache_key)
        if data is None:
            err_console.print(f"[yellow]Not cached: {escape(key)}[/yellow]")
            raise typer.Exit(code=1)
        _emit_payload(cache_key, data, output)


@cache_app.command("key")
def cache_key_cmd(
    source: Annotated[str, typer.Argument(help="URL or asset path")],
) -> None:
    """Print the cache key for a URL or asset path."""
    from apptoolkit.imagecache.cache_key import derive_key

    console.print(derive_key(source))


@cache_app.command("clear")
def cache_clear(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Delete every cached image."""
    if not force:
        confirm = typer.confirm("Delete all cached images?", default=False)
        if not confirm:
            console.print("[yellow]Aborted[/yellow]")
            raise typer.Exit(code=0)

    with _open_cache() as cache:
        cache.clear()
    console.print("[green]Cache cleared[/green]")


@cache_app.command("size")
def cache_size(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the size of the image cache."""
    from dataclasses import asdict

    with _open_cache() as cache:
        stats = cache.stats()
        size_str = cache.report_size()

    if json_output:
        output = asdict(stats)
        output["size"] = size_str
        console.print(json.dumps(output, indent=2), soft_wrap=True)
        return

    console.print(f"[bold]Cache size:[/bold] {size_str}")
    console.print(f"  Files:        {stats.disk_entries}")
    console.print(f"  Limit:        {stats.max_cache_size_bytes:,} bytes")


@cache_app.command("cleanup")
def cache_cleanup() -> None:
    """Evict expired entries and shrink the cache to its size limit."""
    with _open_cache(initial_cleanup=False) as cache:
        report = cache.cleanup()
        size_str = cache.report_size()

    console.print(f"  Expired removed:  {len(report.expired)}")
    console.print(f"  Oversize removed: {len(report.reduced)}")
    console.print(f"  Cache size:       {size_str}")


if __name__ == "__main__":
    app()
