"""Typer CLI — ``pageaudit serve``, ``pageaudit analyze`` and ``pageaudit validate``."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from pageaudit.config import load_config

if TYPE_CHECKING:
    from pageaudit.schemas.analysis import AnalysisRequest, AnalysisResult
    from pageaudit.schemas.config import ServiceConfig

# Load .env file from project root (if it exists)
load_dotenv()

app = typer.Typer(
    name="pageaudit",
    help="Accessibility, responsiveness and performance analysis for web pages.",
    no_args_is_help=True,
)
console = Console()

_CONFIG_OPTION = typer.Option(
    None, "--config", "-c", envvar="PAGEAUDIT_CONFIG", help="Path to pageaudit.yml"
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def _load_or_exit(config: Path | None) -> ServiceConfig:
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", help="Path to pageaudit.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Validate a configuration file without starting the service."""
    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    console.print("[green]Config is valid![/]\n")
    console.print(f"  Listen:         {cfg.host}:{cfg.port}")
    console.print(f"  Exposure base:  {cfg.resolved_exposure_base_url}")
    console.print(f"  axe-core:       {cfg.axe_script_path or cfg.axe_script_url}")
    console.print(f"  Lighthouse:     {' '.join(cfg.lighthouse_command)}")
    console.print(f"  Settle delay:   {cfg.settle_delay_ms} ms")
    console.print(
        f"  Timeouts:       scan {cfg.scan_timeout:g}s, performance {cfg.performance_timeout:g}s, "
        f"lighthouse {cfg.lighthouse_timeout:g}s"
    )
    if cfg.audit_urls_directly:
        console.print("  URL targets are audited directly by Lighthouse")


@app.command()
def serve(
    config: Path = _CONFIG_OPTION,
    host: str = typer.Option(None, "--host", help="Override the configured bind address."),
    port: int = typer.Option(None, "--port", "-p", help="Override the configured port."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run the HTTP service."""
    import uvicorn

    from pageaudit.api.app import create_app

    _setup_logging(verbose)
    cfg = _load_or_exit(config)
    overrides = {k: v for k, v in {"host": host, "port": port}.items() if v is not None}
    if overrides:
        cfg = cfg.model_copy(update=overrides)

    console.print(f"[bold]pageaudit listening on[/] http://{cfg.host}:{cfg.port}")
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port, log_level="debug" if verbose else "info")


@app.command()
def analyze(
    html_file: Path = typer.Option(None, "--html-file", help="HTML file to analyse."),
    url: str = typer.Option(None, "--url", "-u", help="URL to analyse."),
    performance: bool = typer.Option(False, "--performance", help="Also run a Lighthouse audit."),
    config: Path = _CONFIG_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON response."),
    output: Path = typer.Option(None, "--output", "-o", help="Write a Markdown report here."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Analyse one page in-process and print the result.

    Examples:

        pageaudit analyze --html-file page.html --performance

        pageaudit analyze --url https://example.com --json
    """
    from pageaudit.errors import InvalidRequest
    from pageaudit.schemas.analysis import AnalysisRequest

    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    html = None
    if html_file is not None:
        if not html_file.exists():
            console.print(f"[red]No such file:[/] {html_file}")
            raise typer.Exit(code=1)
        html = html_file.read_text()

    request = AnalysisRequest(html=html, url=url, performance_required=performance)
    try:
        request.validate_target()
    except InvalidRequest as exc:
        console.print(f"[red]Invalid request:[/] {exc}")
        raise typer.Exit(code=1)

    result = asyncio.run(_run_analysis(cfg, request))
    target = url or str(html_file)

    if as_json:
        console.print_json(result.model_dump_json(by_alias=True))
    else:
        _print_summary(result)

    if output:
        from pageaudit.output.markdown import render_markdown_report

        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(render_markdown_report(result, target=target))
        console.print(f"[green]Markdown report written to:[/] {output}")


async def _run_analysis(cfg: ServiceConfig, request: AnalysisRequest) -> AnalysisResult:
    """Run the orchestrator, serving session exposure locally when Lighthouse needs it."""
    import uvicorn

    from pageaudit.api.app import create_app
    from pageaudit.audits.orchestrator import AnalysisOrchestrator
    from pageaudit.audits.performance import PerformanceAuditRunner
    from pageaudit.audits.scanner import Scanner
    from pageaudit.shared.browser import free_port
    from pageaudit.shared.sessions import SessionRegistry

    needs_server = request.performance_required and request.html is not None
    if needs_server:
        cfg = cfg.model_copy(
            update={"host": "127.0.0.1", "port": free_port(), "exposure_base_url": ""}
        )

    registry = SessionRegistry()
    orchestrator = AnalysisOrchestrator(
        config=cfg,
        scanner=Scanner(cfg),
        performance=PerformanceAuditRunner(cfg, registry),
    )
    if not needs_server:
        return await orchestrator.analyse(request)

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(cfg, registry=registry, orchestrator=orchestrator),
            host=cfg.host,
            port=cfg.port,
            log_level="warning",
        )
    )
    serving = asyncio.create_task(server.serve())
    while not server.started:
        if serving.done():
            # serve() returned without starting, e.g. the port was taken
            await serving
            raise RuntimeError("Session exposure server failed to start")
        await asyncio.sleep(0.05)
    try:
        return await orchestrator.analyse(request)
    finally:
        server.should_exit = True
        await serving


def _print_summary(result: AnalysisResult) -> None:
    console.print(f"\n[bold]Accessibility:[/] {len(result.violations)} violation(s)")
    for v in result.violations:
        console.print(f"  - [yellow]{v.id}[/] ({len(v.nodes)} node(s)): {v.help}")

    table = Table(title="Responsiveness")
    table.add_column("Viewport")
    table.add_column("Horizontal overflow")
    table.add_column("Oversized images")
    for r in result.responsiveness:
        table.add_row(
            r.viewport_name,
            "[red]yes[/]" if r.has_horizontal_overflow else "[green]no[/]",
            "[yellow]yes[/]" if r.images_oversize else "no",
        )
    console.print(table)

    if result.performance:
        perf = result.performance
        console.print(f"[bold]Performance:[/] {perf.overall_category.value}")
        for name, metric in perf.metrics.items():
            console.print(f"  - {name}: {metric.percentile_value:g} ({metric.category.value})")

    for failure in result.failures:
        console.print(f"[red]✗ {failure.stage}[/] ({failure.kind.value}): {failure.message}")
