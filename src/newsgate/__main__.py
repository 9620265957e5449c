"""
CLI for the grounded generation gate.

Usage:
    python -m newsgate references "AI regulation" --limit 3
    python -m newsgate draft "AI regulation" --mode draft --ref-title "..." --ref-url "..."
    python -m newsgate news clarity "AI regulation" "chip exports" --count 3
    python -m newsgate compliance "원금 보장, 무조건 수익"
    python -m newsgate ops
"""

import asyncio
import sys
from typing import Any, Awaitable, Optional, TypeVar

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Load .env file from the working directory
load_dotenv()

from .compliance import ComplianceScanner
from .config import get_settings
from .config.settings import Settings
from .errors import GenerationRejected
from .ops import JsonFileOpsStore, MetricsRegistry
from .pipeline import GroundedGenerationPipeline
from .research import GoogleNewsFeed, ReferenceAcquisitor
from .state import ComplianceAssessment, ReferenceArticle, ValidatedArtifact
from .utils.logger import configure_logging

console = Console()

T = TypeVar("T")

RISK_STYLES = {"low": "green", "medium": "yellow", "high": "red"}


def _build_pipeline(settings: Settings) -> GroundedGenerationPipeline:
    return GroundedGenerationPipeline.from_settings(settings)


def _build_acquisitor(settings: Settings) -> ReferenceAcquisitor:
    feed = GoogleNewsFeed(language=settings.feed_language, country=settings.feed_country)
    return ReferenceAcquisitor(feed, settings=settings)


def _run(coro: Awaitable[T], settings: Settings) -> T:
    """Run a coroutine under the overall per-request ceiling; exits 1 when it is exceeded."""
    try:
        return asyncio.run(asyncio.wait_for(coro, timeout=settings.request_timeout_s))
    except asyncio.TimeoutError:
        console.print(
            f"[bold red]❌ Timed out: request exceeded {settings.request_timeout_s:g}s[/bold red]"
        )
        sys.exit(1)


def _fail_rejected(error: GenerationRejected) -> None:
    console.print(f"[bold red]❌ Rejected: {error.code}[/bold red] [dim]({error.message})[/dim]")
    console.print_json(data=error.to_dict())
    sys.exit(1)


def _print_compliance(assessment: ComplianceAssessment) -> None:
    style = RISK_STYLES[assessment.risk_level.value]
    console.print(
        f"Compliance risk: [{style}]{assessment.risk_level.value}[/{style}]"
        f"{'  [bold red](publish blocked)[/bold red]' if assessment.publish_blocked else ''}"
    )
    if not assessment.flags:
        return
    table = Table(title="Compliance Flags")
    table.add_column("Category", style="cyan")
    table.add_column("Severity")
    table.add_column("Matched", style="magenta")
    table.add_column("Message", style="dim")
    for flag in assessment.flags:
        severity_style = RISK_STYLES[flag.severity.value]
        table.add_row(
            flag.category,
            f"[{severity_style}]{flag.severity.value}[/{severity_style}]",
            flag.matched,
            flag.message,
        )
    console.print(table)


def _print_artifact(artifact: ValidatedArtifact, heading: Optional[str] = None) -> None:
    body = artifact.summary or artifact.content
    console.print(
        Panel(
            f"[bold]{artifact.title}[/bold]\n\n"
            f"{body}\n\n"
            f"[dim]Source: {artifact.citation.source or '-'} · {artifact.citation.url}[/dim]\n"
            f"[dim]Model: {artifact.model_used} · attempts: {artifact.attempts}"
            f"{' · fallback references' if artifact.used_fallback_references else ''}[/dim]",
            title=heading or f"✅ {artifact.mode.value}",
            border_style="green",
        )
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """newsgate - reference-grounded news and draft generation."""
    settings = get_settings()
    configure_logging(settings, level="DEBUG" if verbose else None)
    ctx.obj = settings


@cli.command()
@click.argument("keyword")
@click.option("--limit", "-l", type=int, default=None, help="Maximum references (default: from settings)")
@click.pass_obj
def references(settings: Settings, keyword: str, limit: Optional[int]) -> None:
    """Fetch grounding references for KEYWORD."""
    acquisitor = _build_acquisitor(settings)
    with console.status(f"[bold cyan]Fetching references for '{keyword}'..."):
        result = _run(acquisitor.fetch_references(keyword, limit=limit), settings)

    table = Table(title=f"References for '{keyword}' (query: {result.query})", show_lines=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Title", style="cyan")
    table.add_column("Source", style="green")
    table.add_column("URL", style="blue")
    for i, article in enumerate(result.articles, 1):
        title = f"{article.title} [yellow](synthetic)[/yellow]" if article.synthetic else article.title
        table.add_row(str(i), title, article.source, article.url or "-")
    console.print(table)
    if result.used_fallback:
        console.print(f"[yellow]⚠[/yellow] Fallback path used: {result.reason_code}")


@cli.command()
@click.argument("topic")
@click.option(
    "--mode",
    "-m",
    type=click.Choice(["draft", "interactive-longform"]),
    default="draft",
    help="Draft mode (default: draft)",
)
@click.option("--ref-title", default=None, help="Title of the selected reference article")
@click.option("--ref-url", default=None, help="URL of the selected reference article")
@click.option("--ref-summary", default="", help="Summary of the selected reference article")
@click.option("--ref-source", default="", help="Publisher of the selected reference article")
@click.pass_obj
def draft(
    settings: Settings,
    topic: str,
    mode: str,
    ref_title: Optional[str],
    ref_url: Optional[str],
    ref_summary: str,
    ref_source: str,
) -> None:
    """Generate a grounded draft or interactive longform article about TOPIC."""
    selected: Optional[ReferenceArticle] = None
    if ref_title or ref_url:
        selected = ReferenceArticle(
            title=ref_title or topic,
            url=ref_url or "",
            summary=ref_summary,
            source=ref_source,
        )

    pipeline = _build_pipeline(settings)
    try:
        with console.status(f"[bold cyan]Generating {mode}..."):
            artifact = _run(pipeline.generate_draft(mode, topic, selected), settings)
    except GenerationRejected as e:
        _fail_rejected(e)
        return
    except ValueError as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        sys.exit(2)
    finally:
        pipeline.close()

    _print_artifact(artifact)
    if artifact.sections is not None:
        table = Table(title="Sections", show_lines=True)
        table.add_column("Section", style="cyan")
        table.add_column("Text")
        table.add_row("core", artifact.sections.core)
        table.add_row("deepDive", artifact.sections.deep_dive)
        table.add_row("conclusion", artifact.sections.conclusion)
        console.print(table)
    _print_compliance(artifact.compliance)


@cli.command()
@click.argument("emotion")
@click.argument("seeds", nargs=-1)
@click.option("--count", "-n", type=int, default=3, help="Number of news items (default: 3)")
@click.pass_obj
def news(settings: Settings, emotion: str, seeds: tuple[str, ...], count: int) -> None:
    """Generate grounded news items for EMOTION from optional keyword SEEDS."""
    pipeline = _build_pipeline(settings)
    try:
        with console.status(f"[bold cyan]Generating {emotion} news..."):
            batch = _run(pipeline.generate_news_items(emotion, list(seeds), count=count), settings)
    except GenerationRejected as e:
        _fail_rejected(e)
        return
    except ValueError as e:
        console.print(f"[bold red]❌ Error: {e}[/bold red]")
        sys.exit(2)
    finally:
        pipeline.close()

    for i, item in enumerate(batch.items, 1):
        _print_artifact(item, heading=f"📰 {batch.emotion_category.value} #{i}")
    if batch.used_fallback_references:
        console.print(f"[yellow]⚠[/yellow] References came from a fallback path: {batch.reason_code}")


@cli.command()
@click.argument("text")
def compliance(text: str) -> None:
    """Scan TEXT for compliance risks."""
    assessment = ComplianceScanner().assess(text)
    _print_compliance(assessment)
    if assessment.publish_blocked:
        sys.exit(1)


@cli.command()
@click.pass_obj
def ops(settings: Settings) -> None:
    """Show the persisted ops counters."""
    registry = MetricsRegistry.rehydrate(JsonFileOpsStore.from_settings(settings))
    snapshot = registry.snapshot()

    table = Table(title=f"📊 Ops Counters (since {snapshot.started_at})")
    table.add_column("Counter", style="cyan")
    table.add_column("Total", justify="right", style="green")
    scopes: list[tuple[str, dict[str, Any]]] = [
        *sorted(snapshot.by_mode.items()),
        *sorted(snapshot.by_category.items()),
    ]
    for scope, _ in scopes:
        table.add_column(scope, justify="right")
    for counter, total in snapshot.totals.items():
        table.add_row(counter, str(total), *(str(counts.get(counter, 0)) for _, counts in scopes))
    console.print(table)
    console.print(f"[dim]Updated: {snapshot.updated_at}[/dim]")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
