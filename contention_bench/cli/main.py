r"""
Command-line interface for contention-bench.

    contention-bench run -n 8 -p utilities -d 50 -r 3
    contention-bench run -u https://example.com/a.js -u https://example.com/b.js -f all
    contention-bench presets
"""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from contention_bench.config import default_catalog, default_configuration, load_catalog, parse_url_list
from contention_bench.errors import ConfigurationError, RunCancelledError
from contention_bench.log import configure_logging
from contention_bench.protocols import ContextFactory
from contention_bench.types import TestConfiguration

__all__ = ["app", "main"]

app = typer.Typer(
    name="contention-bench",
    help="Measure resource-load contention across concurrent execution contexts.",
    no_args_is_help=True,
)


def _default_factory(timeout: float) -> ContextFactory:
    from contention_bench.contexts import HttpFetchWorkload, TaskContextFactory

    return TaskContextFactory(HttpFetchWorkload(timeout=timeout))


context_factory_builder = _default_factory


@app.command()
def run(
    contexts: Annotated[
        int | None, typer.Option("-n", "--contexts", help="Number of execution contexts per run")
    ] = None,
    urls: Annotated[
        list[str] | None, typer.Option("-u", "--url", help="Resource URL (repeatable)")
    ] = None,
    urls_file: Annotated[
        Path | None, typer.Option("--urls-file", help="File with one URL per line")
    ] = None,
    preset: Annotated[str | None, typer.Option("-p", "--preset", help="Preset URL set")] = None,
    catalog: Annotated[
        Path | None, typer.Option("--catalog", help="Catalog JSON file with preset URL sets")
    ] = None,
    delay: Annotated[
        int | None, typer.Option("-d", "--delay", help="Delay between spawns in milliseconds")
    ] = None,
    runs: Annotated[int, typer.Option("-r", "--runs", help="Number of consecutive runs")] = 1,
    output: Annotated[Path | None, typer.Option("-o", "--output", help="Output directory")] = None,
    format_: Annotated[
        str, typer.Option("-f", "--format", help="Output format: json, csv, markdown, all")
    ] = "json",
    timeout: Annotated[
        float | None, typer.Option("--timeout", help="Cancel a run after this many seconds")
    ] = None,
    request_timeout: Annotated[
        float, typer.Option("--request-timeout", help="Per-request timeout in seconds")
    ] = 30.0,
    verbose: Annotated[bool, typer.Option("-v", "--verbose", help="Verbose output")] = False,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Emit logs as JSON lines")] = False,
) -> None:
    """Run one or more contention runs and export the results."""
    from contention_bench.reporting import EXPORTERS, ResultCollector
    from contention_bench.runner import RunOrchestrator, StatisticsAccumulator

    configure_logging(level="DEBUG" if verbose else "WARNING", json_format=json_logs)

    try:
        url_catalog = load_catalog(catalog) if catalog else default_catalog()
        base = default_configuration(url_catalog)

        resource_urls = base.resource_urls
        if preset:
            resource_urls = url_catalog.get(preset).urls
        if urls_file:
            resource_urls = parse_url_list(urls_file.read_text())
        if urls:
            resource_urls = tuple(u.strip() for u in urls if u.strip())

        config = TestConfiguration(
            context_count=contexts if contexts is not None else base.context_count,
            resource_urls=resource_urls,
            spawn_delay_ms=delay if delay is not None else base.spawn_delay_ms,
        )
        if not config.resource_urls:
            raise ConfigurationError("Please add some URLs first")
    except (ValueError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    formats = [f.strip() for f in format_.split(",")]
    if "all" in formats:
        formats = list(EXPORTERS)
    unknown = [f for f in formats if f not in EXPORTERS]
    if unknown:
        typer.echo(f"Error: unknown format(s): {', '.join(unknown)}", err=True)
        raise typer.Exit(1)

    orchestrator = RunOrchestrator(context_factory_builder(request_timeout), statistics=StatisticsAccumulator())
    collector = ResultCollector()
    collector.start_session(config)
    orchestrator.add_result_listener(collector.add_run)

    if verbose:
        orchestrator.set_progress_callback(
            lambda done, total: typer.echo(f"  Completed contexts: {done} / {total}")
        )

    typer.echo(
        f"Running {runs} run(s): {config.context_count} contexts, "
        f"{len(config.resource_urls)} resources, {config.spawn_delay_ms}ms spawn delay"
    )

    async def _session() -> int:
        cancelled = 0
        for index in range(1, runs + 1):
            future = orchestrator.start(config)
            try:
                result = await asyncio.wait_for(orchestrator.wait(future), timeout)
            except TimeoutError:
                orchestrator.cancel()
                typer.echo(f"Run {index}: cancelled after {timeout}s", err=True)
                cancelled += 1
                continue
            except RunCancelledError:
                orchestrator.cancel()
                typer.echo(f"Run {index}: cancelled", err=True)
                cancelled += 1
                continue
            stats = orchestrator.statistics
            typer.echo(
                f"Run {index}: total {result.total_duration:.2f}ms, "
                f"mean per context {result.mean_context_duration_ms:.2f}ms, "
                f"running average {stats.cumulative_average_ms:.2f}ms over {stats.completed_run_count} run(s)"
            )
        return cancelled

    cancelled = asyncio.run(_session())
    collector.end_session()

    if output is not None:
        output.mkdir(parents=True, exist_ok=True)
        session_id = collector.session.session_id
        for fmt in formats:
            exporter = EXPORTERS[fmt]()
            path = output / f"{session_id}{exporter.extension}"
            exporter.export(collector, path)
            typer.echo(f"Exported {fmt}: {path}")

    typer.echo(f"\nCompleted: {len(collector.runs)} run(s), {cancelled} cancelled")
    if cancelled:
        raise typer.Exit(2)


@app.command()
def presets(
    catalog: Annotated[
        Path | None, typer.Option("--catalog", help="Catalog JSON file with preset URL sets")
    ] = None,
    verbose: Annotated[bool, typer.Option("-v", "--verbose", help="Show URLs")] = False,
) -> None:
    """List preset URL sets."""
    try:
        url_catalog = load_catalog(catalog) if catalog else default_catalog()
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("Available presets:")
    for key, url_set in url_catalog.sets.items():
        typer.echo(f"  - {key}: {url_set.name} ({len(url_set.urls)} URLs)")
        if verbose:
            for url in url_set.urls:
                typer.echo(f"      {url}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
