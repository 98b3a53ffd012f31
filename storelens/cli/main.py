#!/usr/bin/env python3
"""Main CLI entry point for StoreLens using Typer.

Runs one store analysis in a local browser and prints the result as a
summary report, JSON or YAML.
"""

import asyncio
import json
import logging
from enum import IntEnum
from pathlib import Path
from typing import Annotated, Optional

import typer

from .. import __version__
from ..audit.capture.config import load_settings
from ..audit.capture.pipeline import analyze_store
from ..audit.errors import AnalysisError
from ..audit.utils.url_normalizer import URLNormalizationError, validate_http_url
from .summary import MetricsSummaryFormatter

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """CLI exit codes."""
    SUCCESS = 0          # Homepage analyzed, result printed
    ANALYSIS_FAILED = 1  # Browser launch, navigation or timeout failure
    INVALID_INPUT = 2    # Bad URL or configuration


# Create the main Typer app
app = typer.Typer(
    name="storelens",
    help="StoreLens - storefront analytics instrumentation analysis",
    add_completion=False,
)


@app.callback()
def main():
    """
    StoreLens - storefront analytics instrumentation analysis.

    Loads a store's homepage and a product page in a real browser and reports
    GA4 events, page timing, consent mode and Elevar configuration.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"StoreLens CLI v{__version__}")


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


@app.command()
def analyze(
    url: Annotated[
        str,
        typer.Argument(help="Store homepage URL (http or https)")
    ],

    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to analysis YAML configuration")
    ] = None,

    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results as JSON")
    ] = False,

    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: text, json or yaml")
    ] = "text",

    headful: Annotated[
        bool,
        typer.Option("--headful", help="Run browser with GUI (for debugging)")
    ] = False,

    skip_product: Annotated[
        bool,
        typer.Option("--skip-product", help="Analyze the homepage only")
    ] = False,

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose output")
    ] = False,
):
    """
    Analyze a store's analytics instrumentation.

    The homepage must load for the run to succeed; the product page is
    best-effort and is reported as missing when it cannot be analyzed.
    """
    configure_logging(verbose)

    if json_output:
        output_format = "json"
    if output_format.lower() not in ("text", "json", "yaml"):
        typer.echo(f"❌ Unsupported output format: {output_format}", err=True)
        raise typer.Exit(code=ExitCode.INVALID_INPUT.value)

    try:
        url = validate_http_url(url)
    except URLNormalizationError as e:
        typer.echo(f"❌ Invalid URL: {e}", err=True)
        raise typer.Exit(code=ExitCode.INVALID_INPUT.value)

    try:
        settings = load_settings(config)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.INVALID_INPUT.value)

    pipeline_config = settings.get_pipeline_config(handle_signals=True)
    if headful:
        pipeline_config.browser_config.headless = False
    if skip_product:
        pipeline_config.analyze_product_page = False

    if output_format.lower() == "text":
        typer.echo(f"🔍 Analyzing {url}", err=True)

    try:
        metrics = asyncio.run(analyze_store(url, pipeline_config))
    except AnalysisError as e:
        typer.echo(f"❌ Analysis failed: {e}", err=True)
        if output_format.lower() == "json":
            typer.echo(json.dumps(e.to_dict(), indent=2))
        if verbose and e.cause is not None:
            typer.echo(f"   Caused by: {e.cause!r}", err=True)
        raise typer.Exit(code=ExitCode.ANALYSIS_FAILED.value)
    except KeyboardInterrupt:
        typer.echo("❌ Operation interrupted by user", err=True)
        raise typer.Exit(code=ExitCode.ANALYSIS_FAILED.value)
    except Exception as e:
        logger.error(f"Unexpected error analyzing {url}: {e}", exc_info=verbose)
        typer.echo(f"❌ Runtime error: {e}", err=True)
        raise typer.Exit(code=ExitCode.ANALYSIS_FAILED.value)

    formatter = MetricsSummaryFormatter(format_type=output_format, verbose=verbose)
    typer.echo(formatter.format_summary(metrics))


if __name__ == "__main__":
    app()
