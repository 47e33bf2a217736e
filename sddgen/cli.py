"""
sddgen CLI - Command-line interface for spec-driven generation

Usage:
    sddgen generate <spec_file> -o <output_dir>
    sddgen fix <project_dir>
    sddgen check <project_dir>
    sddgen extract <response_file>
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from sddgen.artifacts import extract_code_blocks, materialize
from sddgen.config import RunConfig, load_config
from sddgen.diagnostics import DiagnosticsCollector, ErrorInfo
from sddgen.oracle import AnthropicOracle
from sddgen.orchestrator import Orchestrator, PipelineResult
from sddgen.phases import Phase
from sddgen.repair import IterativeRepairLoop, RepairResult
from sddgen.spec import ArchitecturePlan, ParsedSpec

app = typer.Typer(
    name="sddgen",
    help="Generate Next.js projects from Markdown specs",
    add_completion=False,
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route log records through rich; INFO with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    for name in ["anthropic", "httpx", "httpcore"]:
        logging.getLogger(name).setLevel(logging.WARNING)


@app.command()
def generate(
    spec_file: Path = typer.Argument(
        ...,
        help="Path to the Markdown spec file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output directory (defaults to ./output)",
        resolve_path=True,
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="YAML config file (defaults to ./sddgen.yaml when present)",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show phase logs"),
    clean: bool = typer.Option(False, "--clean", help="Remove the temp directory afterwards"),
    no_database: bool = typer.Option(False, "--no-database", help="Skip database generation"),
    no_frontend: bool = typer.Option(False, "--no-frontend", help="Skip frontend generation"),
    no_backend: bool = typer.Option(False, "--no-backend", help="Skip backend generation"),
    no_fix: bool = typer.Option(False, "--no-fix", help="Skip the repair loop"),
    max_attempts: Optional[int] = typer.Option(
        None,
        "--max-attempts",
        min=1,
        help="Maximum repair attempts",
    ),
) -> None:
    """Generate a project from a Markdown spec file."""
    setup_logging(verbose)
    config: RunConfig | None = None
    try:
        config = load_config(
            config_file,
            output_dir=output,
            verbose=verbose or None,
            with_database=False if no_database else None,
            with_frontend=False if no_frontend else None,
            with_backend=False if no_backend else None,
            fix=False if no_fix else None,
            max_fix_attempts=max_attempts,
        )
        oracle = AnthropicOracle.from_config(config)
        orchestrator = Orchestrator(config, oracle, on_phase_complete=_report_phase)
        rprint(f"[green]✓[/green] Loaded: [bold]{spec_file.name}[/bold]")
        result = orchestrator.run(spec_file)
    except Exception as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        if clean and config is not None:
            shutil.rmtree(config.temp_dir, ignore_errors=True)

    _show_summary(result)
    repair = result.outputs.get("repair")
    if isinstance(repair, RepairResult) and not repair.success:
        rprint(
            f"[yellow]![/yellow] {len(repair.remaining_errors)} errors remain; "
            f"run [cyan]sddgen fix {result.project_path}[/cyan] to retry"
        )
    if result.project_path:
        _show_next_steps(
            result.project_path,
            getattr(result.outputs.get("database"), "files_generated", 0) > 0,
        )


@app.command()
def fix(
    project_dir: Path = typer.Argument(
        ...,
        help="Generated project directory",
        exists=True,
        file_okay=False,
        resolve_path=True,
    ),
    max_attempts: int = typer.Option(3, "--max-attempts", min=1, help="Maximum repair attempts"),
    no_types: bool = typer.Option(False, "--no-types", help="Skip tsc"),
    no_lint: bool = typer.Option(False, "--no-lint", help="Skip eslint"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run the repair loop on an existing project."""
    setup_logging(verbose)
    try:
        config = load_config(
            max_fix_attempts=max_attempts,
            check_types=False if no_types else None,
            check_lint=False if no_lint else None,
        )
        collector = DiagnosticsCollector.create(
            check_types=config.check_types,
            check_lint=config.check_lint,
            timeout=config.checker_timeout,
        )
        loop = IterativeRepairLoop(
            collector,
            AnthropicOracle.from_config(config),
            max_attempts=config.max_fix_attempts,
        )
        result = loop.run(project_dir)
    except Exception as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _show_attempts(result)
    if result.success:
        rprint(f"[green]✓[/green] All errors fixed ({len(result.fixed_errors)} fixed)")
        return
    _show_errors(result.remaining_errors, "Remaining errors")
    raise typer.Exit(1)


@app.command()
def check(
    project_dir: Path = typer.Argument(
        ...,
        help="Generated project directory",
        exists=True,
        file_okay=False,
        resolve_path=True,
    ),
    no_types: bool = typer.Option(False, "--no-types", help="Skip tsc"),
    no_lint: bool = typer.Option(False, "--no-lint", help="Skip eslint"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run tsc and eslint and list the errors."""
    setup_logging(verbose)
    collector = DiagnosticsCollector.create(check_types=not no_types, check_lint=not no_lint)
    report = collector.collect_report(project_dir)

    for failure in report.failures:
        rprint(f"[yellow]![/yellow] {failure.checker} skipped: {failure.message}")

    if report.clean:
        rprint("[green]✓[/green] No errors found")
        return

    _show_errors(report.errors, "Errors")
    raise typer.Exit(1)


@app.command()
def extract(
    response_file: Path = typer.Argument(
        ...,
        help="Saved oracle response",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Write the extracted files under this directory",
        resolve_path=True,
    ),
) -> None:
    """Show or write the code blocks found in an oracle response."""
    blocks = extract_code_blocks(response_file.read_text(encoding="utf-8"))
    if not blocks:
        rprint("[yellow]No code blocks found[/yellow]")
        raise typer.Exit(1)

    if output is None:
        tree = Tree(f"[bold]{response_file.name}[/bold]")
        for path, content in blocks.items():
            tree.add(f"{path} [dim]({len(content.encode('utf-8'))} bytes)[/dim]")
        rprint(tree)
        return

    artifacts = materialize(output, blocks)
    rprint(f"[green]✓[/green] Wrote {len(artifacts)} files to {output}")


@app.command()
def version() -> None:
    """Show version."""
    from sddgen import __version__
    rprint(f"sddgen {__version__}")


def _describe(output: Any) -> str:
    if isinstance(output, ParsedSpec):
        return f"{output.project_name} ({len(output.features)} features, {len(output.data_models)} models)"
    if isinstance(output, ArchitecturePlan):
        return f"{len(output.file_list)} files planned"
    if isinstance(output, RepairResult):
        return (
            f"{output.outcome.value} after {output.attempts} attempts, "
            f"{len(output.remaining_errors)} errors remaining"
        )
    files = getattr(output, "files_generated", None)
    if files is not None:
        return f"{files} files generated"
    return type(output).__name__


def _report_phase(phase: Phase, output: Any) -> None:
    rprint(f"[green]✓[/green] {phase.name}: {_describe(output)}")


def _show_summary(result: PipelineResult) -> None:
    table = Table(title="Generation summary")
    table.add_column("Phase", style="cyan")
    table.add_column("Result")

    for name, output in result.outputs.items():
        table.add_row(name, _describe(output))

    rprint(table)


def _show_attempts(result: RepairResult) -> None:
    table = Table(title=f"Repair ({result.outcome.value})")
    table.add_column("Attempt", style="cyan", justify="right")
    table.add_column("Found", justify="right")
    table.add_column("Fixed", justify="right")
    table.add_column("Files")
    table.add_column("Time", justify="right")

    for attempt in result.fix_results:
        table.add_row(
            str(attempt.attempt_number),
            str(attempt.errors_found),
            str(attempt.errors_fixed),
            ", ".join(attempt.files_modified) or "-",
            f"{attempt.duration_ms / 1000:.1f}s",
        )

    rprint(table)


def _show_errors(errors: list[ErrorInfo], title: str) -> None:
    table = Table(title=f"{title} ({len(errors)})")
    table.add_column("File", style="cyan")
    table.add_column("Line", justify="right")
    table.add_column("Kind")
    table.add_column("Code")
    table.add_column("Message")

    for error in errors:
        table.add_row(error.file, str(error.line), error.kind.value, error.code or "-", error.message)

    rprint(table)


def _show_next_steps(project_path: Path, with_database: bool) -> None:
    """Show next steps."""
    steps = f"""
[bold]Next:[/bold]
  cd {project_path}
  npm install
  cp .env.example .env.local
"""
    if with_database:
        steps += "  npm run db:push\n"
    steps += "  npm run dev\n"
    rprint(Panel(steps, title="Done"))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
