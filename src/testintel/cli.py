"""Command-line interface for testintel."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from testintel import __version__
from testintel.config import IntelligenceConfig, create_example_config
from testintel.engine import TestIntelligenceEngine
from testintel.git.context import GitContext
from testintel.risk.prioritizer import TestPrioritizer
from testintel.storage.models import ExecutionResult


console = Console()

CATEGORY_STYLES = {
    "likely_fail": "red",
    "uncertain": "yellow",
    "likely_pass": "green",
}


def print_banner() -> None:
    """Print the testintel banner."""
    console.print(
        Panel.fit(
            "[bold blue]testintel[/bold blue] - Test Intelligence Engine",
            subtitle=f"v{__version__}",
        )
    )


def setup_logging(verbose: bool) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def parse_test_ref(ref: str) -> tuple[str, str]:
    """Split 'path/to/file.py::test_name' into (test_name, file_name)."""
    file_name, sep, test_name = ref.partition("::")
    if not sep or not file_name or not test_name:
        raise click.BadParameter(f"Expected FILE::TEST, got {ref!r}")
    return test_name, file_name


def _load_engine(ctx: click.Context) -> TestIntelligenceEngine:
    config_path = ctx.obj.get("config_path")
    try:
        config = IntelligenceConfig.load_or_default(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        sys.exit(1)

    base_dir = Path(config_path).parent if config_path else Path.cwd()
    engine = TestIntelligenceEngine.for_workspace(base_dir, config)
    ctx.call_on_close(engine.close)
    return engine


@click.group()
@click.version_option(version=__version__, prog_name="testintel")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False),
    help="Path to configuration file (default: testintel.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """testintel - learn from test runs to surface failures sooner.

    Tracks the history of every test, detects flaky and slow tests, and
    predicts which tests are likely to fail for a set of changed files.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config
    setup_logging(verbose)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="testintel.json",
    help="Output path for configuration file",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite existing configuration")
def init(output: str, force: bool) -> None:
    """Initialize a new testintel configuration file."""
    print_banner()

    output_path = Path(output)
    if output_path.exists() and not force:
        console.print(
            f"[yellow]Configuration file already exists:[/yellow] {output_path}"
        )
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        create_example_config(output_path)
    except OSError as e:
        console.print(f"[red]Error creating configuration:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]Created configuration file:[/green] {output_path}")


@main.command()
@click.argument("test_ref")
@click.argument("result", type=click.Choice([r.value for r in ExecutionResult]))
@click.argument("duration_ms", type=click.FloatRange(min=0))
@click.option("--error", "-e", help="Error message of a failure")
@click.option("--changed-file", "-f", "changed_files", multiple=True, help="File changed for this run")
@click.pass_context
def record(
    ctx: click.Context,
    test_ref: str,
    result: str,
    duration_ms: float,
    error: Optional[str],
    changed_files: tuple[str, ...],
) -> None:
    """Record the outcome of one test (TEST_REF is FILE::TEST)."""
    test_name, file_name = parse_test_ref(test_ref)
    engine = _load_engine(ctx)

    engine.record(test_name, file_name, result, duration_ms, error, list(changed_files))
    if engine.is_dirty and not engine.save():
        console.print("[yellow]Warning: recorded execution could not be saved[/yellow]")
        sys.exit(1)

    if ctx.obj.get("verbose"):
        console.print(f"[dim]Recorded {result} for {test_ref} ({duration_ms:.0f}ms)[/dim]")


@main.command()
@click.argument("test_ref")
@click.option("--json", "as_json", is_flag=True, help="Print the insight as JSON")
@click.pass_context
def insights(ctx: click.Context, test_ref: str, as_json: bool) -> None:
    """Show what has been learned about one test (TEST_REF is FILE::TEST)."""
    test_name, file_name = parse_test_ref(test_ref)
    engine = _load_engine(ctx)

    insight = engine.get_insights(test_name, file_name)
    if insight is None:
        console.print(f"[yellow]Not enough history for {test_ref}[/yellow]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(insight.to_dict(), indent=2))
        return

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Test", insight.test_name)
    table.add_row("File", insight.file_name)
    table.add_row("Failure Rate", f"{insight.failure_rate:.0%}")
    table.add_row("Average Duration", f"{insight.average_duration:.0f}ms")
    table.add_row("Recommended Action", insight.recommended_action.value)
    if insight.correlated_tests:
        table.add_row("Fails Together With", ", ".join(insight.correlated_tests))
    console.print(table)

    for pattern in insight.patterns:
        console.print(
            f"\n[bold]{pattern.type.value}[/bold] [dim](confidence {pattern.confidence:.0%})[/dim]"
        )
        for line in pattern.evidence:
            console.print(f"  {line}")
        console.print(f"  [italic]{pattern.suggestion}[/italic]")


@main.command()
@click.argument("test_refs", nargs=-1, required=True)
@click.option("--changed-file", "-f", "changed_files", multiple=True, help="Changed file path")
@click.option(
    "--compare-ref",
    help="Take changed files from git, comparing HEAD against this ref",
)
@click.option("--limit", "-n", type=int, help="Only show the first N tests")
@click.pass_context
def predict(
    ctx: click.Context,
    test_refs: tuple[str, ...],
    changed_files: tuple[str, ...],
    compare_ref: Optional[str],
    limit: Optional[int],
) -> None:
    """Predict outcomes and a fail-fast order for tests (FILE::TEST ...)."""
    candidates = [parse_test_ref(ref) for ref in test_refs]
    engine = _load_engine(ctx)

    changed = list(changed_files)
    if not changed:
        base_dir = Path(ctx.obj["config_path"]).parent if ctx.obj.get("config_path") else Path.cwd()
        with GitContext(base_dir) as git:
            changed = git.changed_files(compare_ref=compare_ref)
        if ctx.obj.get("verbose"):
            console.print(f"[dim]Found {len(changed)} changed files in git[/dim]")

    prioritizer = TestPrioritizer()
    prioritized = prioritizer.prioritize(engine.predict(candidates, changed))
    if limit:
        prioritized = prioritized[:limit]

    table = Table(title="Suggested Execution Order")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Test")
    table.add_column("File", style="dim")
    table.add_column("Prediction")
    table.add_column("Confidence", justify="right")
    table.add_column("Reasoning", style="dim")

    for test in prioritized:
        style = CATEGORY_STYLES[test.category]
        table.add_row(
            str(test.priority_rank),
            test.name,
            test.file_path,
            f"[{style}]{test.category.replace('_', ' ')}[/{style}]",
            f"{test.confidence:.0%}",
            test.reasoning,
        )

    console.print(table)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the dashboard as JSON")
@click.pass_context
def dashboard(ctx: click.Context, as_json: bool) -> None:
    """Show a workspace-wide summary."""
    engine = _load_engine(ctx)
    data = engine.get_dashboard()

    if as_json:
        click.echo(json.dumps(data.to_dict(), indent=2))
        return

    print_banner()
    summary = Table(show_header=False, box=None)
    summary.add_column("Metric", style="bold")
    summary.add_column("Value", justify="right")
    summary.add_row("Tracked Tests", str(data.total_tests))
    summary.add_row("Executions", str(data.total_executions))
    summary.add_row("Failure Rate", f"{data.overall_failure_rate:.1%}")
    console.print(summary)

    if data.slowest_tests:
        slow = Table(title="Slowest Tests")
        slow.add_column("Test")
        slow.add_column("Average", justify="right")
        for name, duration in data.slowest_tests:
            slow.add_row(name, f"{duration / 1000:.2f}s")
        console.print(slow)

    if data.flakiest_tests:
        flaky = Table(title="Flakiest Tests")
        flaky.add_column("Test")
        flaky.add_column("Flakiness", justify="right")
        for name, flakiness in data.flakiest_tests:
            flaky.add_row(name, f"{flakiness:.0%}")
        console.print(flaky)

    trend = Table(title="Last 7 Days")
    trend.add_column("Date", style="dim")
    trend.add_column("Passed", justify="right", style="green")
    trend.add_column("Failed", justify="right", style="red")
    for day in data.daily_trend:
        trend.add_row(day.date, str(day.passed), str(day.failed))
    console.print(trend)


@main.command()
@click.pass_context
def suggest(ctx: click.Context) -> None:
    """Suggest workspace-level test improvements."""
    engine = _load_engine(ctx)
    suggestions = engine.optimization_suggestions()

    if not suggestions:
        console.print("[green]No suggestions, the test suite looks healthy[/green]")
        return

    for s in suggestions:
        console.print(f"\n[bold]{s.title}[/bold] [dim]({s.category}, {s.impact} impact)[/dim]")
        console.print(f"  {s.description}")
        for name in s.tests:
            console.print(f"  - {name}")


@main.command()
@click.option("--output", "-o", type=click.Path(), help="Output file (default: next to the state file)")
@click.pass_context
def export(ctx: click.Context, output: Optional[str]) -> None:
    """Export insights and state as JSON."""
    engine = _load_engine(ctx)
    try:
        path = engine.export_insights(output)
    except OSError as e:
        console.print(f"[red]Error exporting insights:[/red] {e}")
        sys.exit(1)
    console.print(f"[green]Exported insights:[/green] {path}")


@main.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Forget all learned history."""
    if not yes:
        click.confirm("Delete all recorded test history?", abort=True)

    engine = _load_engine(ctx)
    engine.clear_history()
    console.print("[green]Test intelligence data cleared[/green]")


if __name__ == "__main__":
    main()
