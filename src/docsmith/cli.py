"""docsmith CLI — research a code base and write its documentation.

Usage:
    docsmith generate <project_path> [--language en] [--provider openai]
    docsmith cache-report [--cache-dir .docsmith/cache] [--clear]
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from . import __version__
from .cache import CacheManager, CachePerformanceReport
from .config import CacheConfig, Config
from .errors import AgentExecutionError, DocsmithError
from .i18n import TargetLanguage
from .llm.providers import SUPPORTED_PROVIDERS
from .pipeline import Pipeline, PipelineResult

console = Console()

BANNER = r"""
     _                          _ _   _
  __| | ___   ___ ___ _ __ ___ (_) |_| |__
 / _` |/ _ \ / __/ __| '_ ` _ \| | __| '_ \
| (_| | (_) | (__\__ \ | | | | | | |_| | | |
 \__,_|\___/ \___|___/_| |_| |_|_|\__|_| |_|

  Code base research & documentation  v{version}
"""


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.version_option(version=__version__, prog_name="docsmith")
def main():
    """docsmith — Generate architecture documentation for any code base."""
    pass


@main.command()
@click.argument("project_path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML config file. Command-line options override its values.",
)
@click.option("-o", "--output", "output_path", type=click.Path(path_type=Path), default=None,
              help="Output directory (default: ./docsmith.docs).")
@click.option(
    "--language",
    type=click.Choice([lang.value for lang in TargetLanguage], case_sensitive=False),
    default=None,
    help="Language of the generated documentation.",
)
@click.option(
    "--provider",
    "llm_provider",
    type=click.Choice(SUPPORTED_PROVIDERS, case_sensitive=False),
    default=None,
    help="LLM provider.",
)
@click.option("--model-efficient", default=None, help="Model for regular prompts.")
@click.option("--model-powerful", default=None, help="Model for large prompts and fallback.")
@click.option("--api-key", "api_key", default=None, envvar="DOCSMITH_LLM_API_KEY",
              help="API key (defaults to DOCSMITH_LLM_API_KEY or the provider's env var).")
@click.option("--base-url", "base_url", default=None, help="Custom API base URL.")
@click.option("--max-parallels", type=click.IntRange(min=1), default=None,
              help="Maximum concurrent domain analyses.")
@click.option("--no-cache", is_flag=True, default=False, help="Disable the prompt cache.")
@click.option("--force", "force_regenerate", is_flag=True, default=False,
              help="Ignore cached results (they are still refreshed).")
@click.option("--skip-research", is_flag=True, default=False, help="Only run preprocessing.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose logging.")
def generate(
    project_path: Path,
    config_path: Path | None,
    output_path: Path | None,
    language: str | None,
    llm_provider: str | None,
    model_efficient: str | None,
    model_powerful: str | None,
    api_key: str | None,
    base_url: str | None,
    max_parallels: int | None,
    no_cache: bool,
    force_regenerate: bool,
    skip_research: bool,
    verbose: bool,
):
    """Research PROJECT_PATH and write documentation for it."""
    _setup_logging(verbose)
    console.print(BANNER.format(version=__version__), style="bold cyan")

    try:
        config = Config.from_file(config_path) if config_path else Config()
    except ValueError as exc:
        console.print(f"[bold red]Config error:[/] {exc}")
        raise SystemExit(2)

    config.project_path = project_path
    if output_path:
        config.output_path = output_path
    if language:
        config.target_language = TargetLanguage.parse(language)
    if llm_provider:
        config.llm.provider = llm_provider.lower()
    if model_efficient:
        config.llm.model_efficient = model_efficient
    if model_powerful:
        config.llm.model_powerful = model_powerful
    if api_key:
        config.llm.api_key = api_key
    if base_url:
        config.llm.api_base_url = base_url
    if max_parallels:
        config.llm.max_parallels = max_parallels
    config.cache.enabled = config.cache.enabled and not no_cache
    config.force_regenerate = config.force_regenerate or force_regenerate
    config.skip_research = config.skip_research or skip_research
    config.verbose = verbose

    try:
        pipeline = Pipeline(config)
    except (ImportError, RuntimeError, ValueError) as exc:
        console.print(f"[bold red]Setup failed:[/] {exc}")
        raise SystemExit(1)

    info = pipeline.ctx.invoker.describe()
    console.print(Panel(
        f"[bold]Project:[/]    {config.get_project_name()} ({project_path})\n"
        f"[bold]Output:[/]     {config.output_path}\n"
        f"[bold]Language:[/]   {config.target_language.display_name}\n"
        f"[bold]Provider:[/]   {info['provider']}\n"
        f"[bold]Models:[/]     {info['model_efficient']} / {info['model_powerful']}\n"
        f"[bold]Cache:[/]      "
        + ("[green]on[/]" if config.cache.enabled else "[yellow]off[/]")
        + (" [dim](force regenerate)[/]" if config.force_regenerate else ""),
        title="[bold green]docsmith — New Run[/]",
        border_style="green",
    ))

    try:
        result = asyncio.run(pipeline.run())
    except DocsmithError as exc:
        console.print()
        _print_cache_report(pipeline.ctx.cache.generate_report())
        if isinstance(exc, AgentExecutionError):
            console.print(f"\n[bold red]Agent {exc.agent} failed:[/] {exc.cause}")
        else:
            console.print(f"\n[bold red]Run failed:[/] {exc}")
        raise SystemExit(1)

    console.print()
    _print_result(result)
    _print_cache_report(pipeline.ctx.cache.generate_report())
    console.print("\n[bold green]Done![/]\n")


@main.command("cache-report")
@click.option("--cache-dir", type=click.Path(path_type=Path), default=None,
              help="Cache directory (default: from config or .docsmith/cache).")
@click.option("-c", "--config", "config_path",
              type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None)
@click.option("--clear", is_flag=True, default=False, help="Delete cached entries.")
@click.option("--category", default=None, help="Restrict --clear to one category.")
def cache_report(cache_dir: Path | None, config_path: Path | None, clear: bool, category: str | None):
    """Show what the prompt cache holds, or clear it."""
    cache_config = Config.from_file(config_path).cache if config_path else CacheConfig()
    if cache_dir:
        cache_config.cache_dir = cache_dir
    root = Path(cache_config.cache_dir)

    if clear:
        CacheManager(cache_config).clear(category)
        console.print(f"[green]✓[/] Cleared {root / category if category else root}")
        return

    if not root.exists():
        console.print(f"[dim]No cache at {root}.[/]")
        return

    table = RichTable(title=f"Cache: {root}")
    table.add_column("Category", style="bold cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Newest", style="dim")

    for entries_dir in sorted(p for p in root.rglob("*") if p.is_dir()):
        files = list(entries_dir.glob("*.json"))
        if not files:
            continue
        newest = max(f.stat().st_mtime for f in files)
        table.add_row(
            entries_dir.relative_to(root).as_posix(),
            str(len(files)),
            _human_size(sum(f.stat().st_size for f in files)),
            datetime.fromtimestamp(newest).strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def _print_result(result: PipelineResult) -> None:
    table = RichTable(title="Phases", show_lines=False)
    table.add_column("Phase", style="bold cyan")
    table.add_column("Elapsed", justify="right")
    for phase, seconds in result.phase_durations.items():
        table.add_row(phase, f"{seconds:.1f}s")
    console.print(table)

    if result.outcome is not None:
        console.print(f"[bold]Agents:[/]   {', '.join(result.outcome.completed_agents)}")
    if result.compose is not None:
        console.print(f"[bold]Documents:[/] {len(result.compose.doc_tree.structure)}")
    if result.outlet is not None:
        console.print(f"[bold]Outputs:[/]  {result.outlet.output_dir} ({len(result.outlet.written)} files)")
    console.print(f"[bold]Elapsed:[/]  {result.elapsed_seconds:.1f}s")


def _print_cache_report(report: CachePerformanceReport) -> None:
    table = RichTable(title="Cache performance")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Hit rate", f"{report.hit_rate * 100:.1f}%")
    table.add_row("Hits / misses", f"{report.cache_hits} / {report.cache_misses}")
    table.add_row("Writes", str(report.cache_writes))
    table.add_row("Errors", str(report.cache_errors))
    table.add_row("Time saved", f"{report.inference_time_saved:.1f}s")
    table.add_row("Tokens saved", f"{report.input_tokens_saved} in / {report.output_tokens_saved} out")
    table.add_row("Cost saved", f"${report.cost_saved:.4f}")
    console.print(table)


def _human_size(size: int) -> str:
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f}{unit}"
        size /= 1024
    return f"{size:.1f}GB"


if __name__ == "__main__":
    main()
