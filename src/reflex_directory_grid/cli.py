"""CLI for reflex-directory-grid -- browse, import and export directory records.

Usage::

    # Open the persons grid in the browser
    reflex-directory-grid serve person

    # Print one page of interactions, filtered and sorted
    reflex-directory-grid list interaction --filter type=Meeting,Support --sort date --descending

    # Bulk-import a spreadsheet of persons
    reflex-directory-grid import contacts.xlsx

    # Let the server do the import and follow its progress
    reflex-directory-grid import contacts.xlsx --server-side

    # Download every person as CSV
    reflex-directory-grid export person --output persons.csv

The API location and credentials come from ``DIRECTORY_*`` environment
variables (or ``.env``); ``--api-url`` overrides the base URL.
"""

import asyncio
import logging
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Optional

import polars as pl
import typer

from reflex_directory_grid.api import DirectoryApiClient
from reflex_directory_grid.config import DirectorySettings, get_settings
from reflex_directory_grid.controller import RemoteGridController
from reflex_directory_grid.errors import DirectoryError, ImportValidationError
from reflex_directory_grid.importer import ImportJob, ImportProgress, ImportStatus
from reflex_directory_grid.query import FilterKind, describe_filters
from reflex_directory_grid.resources import RESOURCES, Resource, get_resource
from reflex_directory_grid.server_import import ServerImportJob, SocketIOProgressChannel
from reflex_directory_grid.spreadsheet import SourceFile

app = typer.Typer(
    name="reflex-directory-grid",
    help="Browse, bulk-import and export contact directory records.",
    no_args_is_help=True,
)


@app.callback()
def _configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log requests and timings")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _settings(api_url: str | None) -> DirectorySettings:
    settings = get_settings()
    if api_url:
        settings = settings.model_copy(update={"api_url": api_url})
    return settings


def _resource_or_exit(name: str) -> Resource:
    try:
        return get_resource(name)
    except KeyError:
        typer.echo(f"Error: unknown resource {name!r}; choose from {sorted(RESOURCES)}", err=True)
        raise typer.Exit(code=1)


def _parse_filters(resource: Resource, items: list[str]) -> dict[str, object]:
    """Turn ``field=value`` options into filter values (comma lists for enum columns)."""
    filters: dict[str, object] = {}
    for item in items:
        name, sep, value = item.partition("=")
        if not sep:
            raise typer.BadParameter(f"expected FIELD=VALUE, got {item!r}", param_hint="--filter")
        name = name.strip()
        kind = resource.filter_kinds.get(name)
        if kind is FilterKind.ENUM:
            filters[name] = frozenset(v.strip() for v in value.split(",") if v.strip())
        else:
            filters[name] = value
    return filters


# ---------------------------------------------------------------------------
# App template -- uses __PLACEHOLDER__ tokens for dynamic parts.
# ---------------------------------------------------------------------------

_APP_TEMPLATE = '''"""Auto-generated directory app for: __RESOURCE__"""

import reflex as rx

from reflex_directory_grid import (
    DirectoryGridMixin,
    directory_grid,
    directory_grid_stats_bar,
    directory_import_panel,
    get_resource,
)

RESOURCE = get_resource("__RESOURCE__")


class DirectoryState(DirectoryGridMixin, rx.State):
    dir_grid_resource: str = "__RESOURCE__"


def index() -> rx.Component:
    return rx.box(
        rx.heading("__TITLE__", size="6", margin_bottom="0.5em"),
        directory_grid_stats_bar(DirectoryState),
        directory_grid(DirectoryState, RESOURCE),
        __IMPORT_PANEL__
        padding="2em",
        max_width="1400px",
        margin="0 auto",
        on_unmount=DirectoryState.release_dir_grid,
    )


app = rx.App()
app.add_page(index, on_load=DirectoryState.load_dir_grid)
'''


def _build_app_code(resource: Resource, title: str, server_side_import: bool) -> str:
    """Generate the Reflex app module source code for *resource*."""
    import_panel = ""
    if resource.path == "person":
        flag = "True" if server_side_import else "False"
        import_panel = f"directory_import_panel(DirectoryState, server_side={flag}),"
    template = _APP_TEMPLATE
    template = template.replace("__RESOURCE__", resource.path)
    template = template.replace("__TITLE__", title.replace('"', '\\"'))
    template = template.replace("__IMPORT_PANEL__", import_panel)
    return template


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def serve(
    resource: Annotated[str, typer.Argument(help="Collection to browse: person or interaction")] = "person",
    port: Annotated[int, typer.Option("--port", "-p", help="Port for the Reflex frontend")] = 3000,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Page title")] = None,
    server_side_import: Annotated[
        bool, typer.Option("--server-side-import", help="Let the server run bulk imports")
    ] = False,
) -> None:
    """Open the paginated grid for a collection in the browser."""
    target = _resource_or_exit(resource)
    if title is None:
        title = f"{target.name.title()} Directory"

    tmp_dir = Path(tempfile.mkdtemp(prefix="directory_grid_"))
    app_name = "directory_app"
    app_pkg = tmp_dir / app_name
    app_pkg.mkdir()
    (app_pkg / "__init__.py").write_text("")
    (app_pkg / f"{app_name}.py").write_text(_build_app_code(target, title, server_side_import))
    (tmp_dir / "rxconfig.py").write_text(
        f"""import reflex as rx
config = rx.Config(app_name="{app_name}", frontend_port={port})
"""
    )

    typer.echo(f"Launching {target.name} grid against {get_settings().api_url} on port {port}")
    os.chdir(tmp_dir)

    # reflex's CLI calls sys.exit() on completion, so init runs in a subprocess.
    typer.echo("Initializing Reflex project...")
    subprocess.run([sys.executable, "-m", "reflex", "init"], cwd=str(tmp_dir), check=True)

    typer.echo("Starting app...")
    os.execvp(sys.executable, [sys.executable, "-m", "reflex", "run"])


async def _list_page(
    settings: DirectorySettings,
    resource: Resource,
    filters: dict[str, object],
    sort: str | None,
    descending: bool,
    page: int,
    page_size: int,
) -> RemoteGridController:
    client = DirectoryApiClient.from_settings(settings)
    grid = RemoteGridController(client, resource, settings=settings, page_size=page_size)
    try:
        for name, value in filters.items():
            grid.set_filter(name, value)
        if sort:
            grid.set_sort(sort)
            if descending:
                grid.set_sort(sort)
        grid.set_page(page)
        await grid.refresh()
    finally:
        await grid.aclose()
        await client.aclose()
    return grid


@app.command("list")
def list_records(
    resource: Annotated[str, typer.Argument(help="Collection to query: person or interaction")],
    filter_: Annotated[
        Optional[list[str]],
        typer.Option("--filter", "-f", help="FIELD=VALUE; comma-separated for enumerated columns"),
    ] = None,
    sort: Annotated[Optional[str], typer.Option("--sort", "-s", help="Field to sort by")] = None,
    descending: Annotated[bool, typer.Option("--descending", "-d", help="Sort descending")] = False,
    page: Annotated[int, typer.Option("--page", help="1-based page number")] = 1,
    page_size: Annotated[int, typer.Option("--page-size", "-n", help="Rows per page (10, 25, 50, 100)")] = 10,
    api_url: Annotated[Optional[str], typer.Option("--api-url", help="Override the API base URL")] = None,
) -> None:
    """Print one page of a collection as a table."""
    target = _resource_or_exit(resource)
    filters = _parse_filters(target, filter_ or [])
    try:
        grid = asyncio.run(
            _list_page(_settings(api_url), target, filters, sort, descending, page, page_size)
        )
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    if grid.last_error is not None:
        typer.echo(f"Error: {grid.last_error}", err=True)
        raise typer.Exit(code=1)

    rows = [record.to_row() for record in grid.current_rows()]
    fields = [c.field for c in target.columns]
    frame = pl.DataFrame(
        [{f: None if row.get(f) is None else str(row[f]) for f in fields} for row in rows],
        schema=dict.fromkeys(fields, pl.String),
        orient="row",
    )
    with pl.Config(tbl_rows=-1, tbl_cols=-1, fmt_str_lengths=40):
        typer.echo(frame)
    info = grid.current_page_info()
    typer.echo(f"page {info.page} of {max(info.total_pages, 1)} ({grid.total_count} total)")
    for line in describe_filters(grid.state, target.filter_kinds):
        typer.echo(f"  filter: {line}")


async def _run_client_import(
    settings: DirectorySettings,
    source: SourceFile,
    concurrency: int,
) -> ImportJob:
    async with DirectoryApiClient.from_settings(settings) as client:
        job = ImportJob(client, source, concurrency=concurrency, max_bytes=settings.import_max_bytes)
        total = job.prepare()
        if job.skipped_rows:
            typer.echo(f"Skipping {len(job.skipped_rows)} row(s) without a name: {job.skipped_rows}")
        with typer.progressbar(length=total, label=f"Importing {source.name}") as bar:
            async for _ in job.stream():
                bar.update(1)
    return job


async def _run_server_import(settings: DirectorySettings, source: SourceFile) -> ServerImportJob:
    def _echo(progress: ImportProgress) -> None:
        typer.echo(f"  {progress.summary()}")

    async with DirectoryApiClient.from_settings(settings) as client:
        job = ServerImportJob(
            client,
            source,
            SocketIOProgressChannel.from_settings(settings),
            idle_timeout=settings.import_idle_timeout,
            max_bytes=settings.import_max_bytes,
            on_progress=_echo,
        )
        await job.run()
    return job


@app.command("import")
def import_file(
    file: Annotated[Path, typer.Argument(help="Spreadsheet of persons (.xls, .xlsx or .csv)")],
    server_side: Annotated[
        bool, typer.Option("--server-side", help="Upload once and follow the server's progress")
    ] = False,
    concurrency: Annotated[
        Optional[int], typer.Option("--concurrency", "-c", help="Creates in flight (client-side import)")
    ] = None,
    api_url: Annotated[Optional[str], typer.Option("--api-url", help="Override the API base URL")] = None,
) -> None:
    """Bulk-import persons from a spreadsheet."""
    file = file.resolve()
    if not file.exists():
        typer.echo(f"Error: file not found: {file}", err=True)
        raise typer.Exit(code=1)

    settings = _settings(api_url)
    source = SourceFile.from_path(file)
    try:
        if server_side:
            job: ImportJob | ServerImportJob = asyncio.run(_run_server_import(settings, source))
        else:
            job = asyncio.run(
                _run_client_import(settings, source, concurrency or settings.import_concurrency)
            )
    except ImportValidationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(job.progress.summary())
    if job.status is not ImportStatus.COMPLETED:
        typer.echo(f"Import aborted: {job.abort_reason}", err=True)
        raise typer.Exit(code=2)


@app.command()
def export(
    resource: Annotated[str, typer.Argument(help="Collection to export: person or interaction")] = "person",
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Destination CSV file")] = None,
    api_url: Annotated[Optional[str], typer.Option("--api-url", help="Override the API base URL")] = None,
) -> None:
    """Download a whole collection as CSV."""
    target = _resource_or_exit(resource)
    settings = _settings(api_url)
    dest = output or Path.cwd() / target.export_filename

    async def _export() -> Path:
        async with DirectoryApiClient.from_settings(settings) as client:
            return await client.export_csv(target, dest)

    try:
        path = asyncio.run(_export())
    except DirectoryError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Wrote {path}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
