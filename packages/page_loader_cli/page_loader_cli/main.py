"""Main entry point for the page loader CLI."""

from __future__ import annotations

import asyncio
import json

import typer
from page_loader import LoadOptions, LoadResult, PageConfigLoader, __version__
from page_loader.application.error_handling import RetryConfig, with_retry, with_timeout
from page_loader.config import get_config
from page_loader.domain.exceptions import FetchTimeoutError, LoadError
from page_loader.infrastructure.logging import LoggingConfig, LogLevel, setup_logging

app = typer.Typer(help="Fetch page configurations through the page loader cache.")


@app.command()  # type: ignore[misc]
def version() -> None:
    """Show the page loader version."""
    typer.echo(f"Page loader version {__version__}")


@app.command()  # type: ignore[misc]
def fetch(
    resource_id: str = typer.Argument(..., help="Page identifier"),
    base_url: str | None = typer.Option(None, "--base-url", help="Configuration source URL"),
    skip_cache: bool = typer.Option(False, "--skip-cache", help="Bypass a fresh cached copy"),
    timeout: float | None = typer.Option(
        None, "--timeout", min=0.0, help="Overall time budget in seconds, retries included"
    ),
    retries: int | None = typer.Option(
        None, "--retries", min=1, help="Attempts on network errors (default from config)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Fetch a page configuration and print it as JSON."""
    setup_logging(
        LoggingConfig(level=LogLevel.DEBUG if verbose else LogLevel.WARNING)
    )

    config = get_config()
    if base_url is not None:
        config = config.model_copy(
            update={"source": config.source.model_copy(update={"base_url": base_url})}
        )

    retry_config = RetryConfig.from_settings(config.retries, max_attempts=retries)

    async def run() -> LoadResult:
        async with PageConfigLoader.from_config(config) as loader:

            @with_retry(retry_config)
            async def load() -> LoadResult:
                return await loader.load(resource_id, LoadOptions(skip_cache=skip_cache))

            if timeout is None:
                return await load()
            return await with_timeout(load(), timeout, operation_name=f"fetch {resource_id}")

    try:
        result = asyncio.run(run())
    except LoadError as e:
        typer.echo(f"Error [{e.kind.value}]: {e.message}", err=True)
        raise typer.Exit(code=1) from None
    except FetchTimeoutError as e:
        typer.echo(f"Error [NETWORK_ERROR]: {e.message}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(
        json.dumps(
            {
                "resource_id": resource_id,
                "etag": result.etag,
                "source": result.source.value,
                "from_cache": result.from_cache,
                "config": result.config,
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    app()
