"""Command line interface for operating the datafeed cache.

Commands act on the same TTL store the API uses (with the sqlite backend),
so ``datafeed cache clear`` invalidates what the running service serves.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any

import typer
import yaml
from rich.console import Console
from rich.table import Table

from datafeed import __version__
from datafeed.core.config import settings
from datafeed.core.dependencies import ServiceContainer, build_container

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

app = typer.Typer(add_completion=False, help="Operate the datafeed cache.")
console = Console()


class OutputFormat(str, Enum):
    table = "table"
    json = "json"
    yaml = "yaml"


def _human_duration(seconds: int) -> str:
    if seconds and seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour" + ("s" if hours != 1 else "")
    if seconds and seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} min" + ("s" if minutes != 1 else "")
    return f"{seconds} secs"


def _fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _success(message: str) -> None:
    typer.secho(f"Success: {message}", fg=typer.colors.GREEN)


def _warn(message: str) -> None:
    typer.secho(f"Warning: {message}", fg=typer.colors.YELLOW)


def _container(ctx: typer.Context) -> ServiceContainer:
    return ctx.obj


@app.callback()
def main(
    ctx: typer.Context,
    log: bool = typer.Option(False, "--log", help="Emit application logs to stderr"),
) -> None:
    """Cache and rate limit maintenance for the datafeed service."""
    logging.basicConfig(level=logging.INFO if log else logging.WARNING, format=_LOG_FORMAT)
    if ctx.obj is None:
        ctx.obj = build_container(settings)


@app.command()
def refresh(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", help="Show detailed debug information"),
) -> None:
    """Clear the cache and fetch fresh data from the remote API."""
    service = _container(ctx).data_service

    if debug:
        typer.echo("Starting cache refresh process...")

    cleared = service.clear_cache()
    if debug:
        typer.echo("Cache cleared." if cleared else "Cache was already empty.")
        typer.echo("Fetching fresh data from API...")

    result = asyncio.run(service.get_data(force_refresh=True))
    if result.error is not None:
        _fail(f"Failed to fetch fresh data: {result.error.message}")

    payload = result.payload
    _success(
        "Cache cleared and fresh data fetched successfully. "
        f"{payload.total_records} rows retrieved."
    )
    if debug:
        typer.echo("API Response structure:")
        typer.echo(json.dumps(list(payload.model_dump().keys()), indent=4))


def _status_rows(container: ServiceContainer) -> list[dict[str, str]]:
    cache_info = container.data_service.get_cache_info()
    limiter_stats = container.rate_limiter.stats()

    return [
        {
            "Component": "Cache Status",
            "Value": "Active" if cache_info.is_cached else "Inactive",
            "Details": "Data is cached" if cache_info.is_cached else "No cached data",
        },
        {
            "Component": "Cache Duration",
            "Value": _human_duration(cache_info.cache_duration),
            "Details": "Time data is cached",
        },
        {
            "Component": "Rate Limiting",
            "Value": "Enabled" if settings.app.rate_limit_enabled else "Disabled",
            "Details": (
                f"{limiter_stats['rate_limit_requests']} requests per "
                f"{_human_duration(limiter_stats['rate_limit_window_seconds'])}"
            ),
        },
        {
            "Component": "Security Headers",
            "Value": "Enabled" if settings.app.security_headers_enabled else "Disabled",
            "Details": "Clickjacking and MIME sniffing",
        },
        {
            "Component": "Version",
            "Value": __version__,
            "Details": "Current service version",
        },
    ]


def _status_table(rows: list[dict[str, str]]) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Details")
    for row in rows:
        table.add_row(row["Component"], row["Value"], row["Details"])
    return table


@app.command()
def status(
    ctx: typer.Context,
    output_format: OutputFormat = typer.Option(
        OutputFormat.table,
        "--format",
        case_sensitive=False,
        help="Render output in a particular format.",
    ),
) -> None:
    """Show cache and rate limiting status."""
    rows = _status_rows(_container(ctx))

    if output_format is OutputFormat.json:
        typer.echo(json.dumps(rows, indent=4))
    elif output_format is OutputFormat.yaml:
        typer.echo(yaml.safe_dump(rows, sort_keys=False, allow_unicode=True), nl=False)
    else:
        console.print(_status_table(rows))


@app.command()
def cache(
    ctx: typer.Context,
    action: str = typer.Argument(..., help="Cache action: clear or info"),
) -> None:
    """Clear the cached payload or show cache information."""
    service = _container(ctx).data_service

    if action == "clear":
        if service.clear_cache():
            _success("Cache cleared successfully.")
        else:
            _fail("Failed to clear cache: nothing was cached.")
    elif action == "info":
        info = service.get_cache_info()
        typer.echo("Cache Information:")
        typer.echo(f"Status: {'Active' if info.is_cached else 'Inactive'}")
        typer.echo(f"Key: {info.cache_key}")
        typer.echo(f"Duration: {_human_duration(info.cache_duration)}")
    else:
        _fail(f"Unknown cache action: {action}. Available actions: clear, info")


@app.command("test")
def test_api(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed test information"),
) -> None:
    """Test API connectivity, then check that a second read hits the cache."""
    service = _container(ctx).data_service

    typer.echo("Testing API connectivity...")
    check = asyncio.run(service.check_connection())

    if check.status_code is not None:
        typer.echo(f"Response Code: {check.status_code}")
    typer.echo(f"Response Time: {check.elapsed_ms}ms")

    if not check.ok:
        _fail(f"API connectivity test failed: {check.error}")

    _success(f"API test successful! Retrieved {check.row_count} rows.")
    if verbose and check.sample_row:
        typer.echo("Sample data structure:")
        for key, value in check.sample_row.items():
            shown = value[:50] if isinstance(value, str) else type(value).__name__
            typer.echo(f"  {key}: {shown}")

    typer.echo("Testing caching functionality...")
    service.clear_cache()

    async def _two_reads():
        return await service.get_data(), await service.get_data()

    first, second = asyncio.run(_two_reads())
    if not (first.ok and second.ok):
        _warn("Cache test failed due to API errors.")
        return

    typer.echo(f"First request served from cache: {first.from_cache}")
    typer.echo(f"Second request served from cache: {second.from_cache}")
    if second.from_cache and second.payload == first.payload:
        _success("Caching is working correctly!")
    else:
        _warn("Cache test inconclusive.")


@app.command()
def cleanup(ctx: typer.Context) -> None:
    """Remove expired rate limit counters from the store."""
    removed = _container(ctx).rate_limiter.cleanup()
    _success(f"Removed {removed} expired rate limit entries.")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    port: int = typer.Option(8000, help="Port to listen on"),
    workers: int = typer.Option(1, min=1, help="Worker processes (use the sqlite store when > 1)"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("datafeed.main:app", host=host, port=port, workers=workers)


if __name__ == "__main__":  # pragma: no cover
    app()
