"""Typer-based CLI for memory-bank project intelligence."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import fields
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .cache import format_time_remaining
from .config import Settings, load_settings
from .config_manager import SECTIONS, load_llm_config, save_config
from .errors import CacheError, CacheExpiredError, ConfigurationError, MemoryBankError, ValidationError
from .graph_export import export_dot
from .llm import LocalLLM
from .models import AnalysisDepth, AnalysisSnapshot, Phase1Result, Phase2Result
from .orchestrator import MemoryBankOrchestrator, run_pipeline
from .security import sanitize_project_path
from .sessions import SessionStore

console = Console()

app = typer.Typer(
    help="🧠 Memory Bank CLI — analyze a codebase and synthesize its memory bank.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
config_app = typer.Typer(help="⚙️  Show or change configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Memory Bank CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging."),
):
    """Memory Bank CLI: two-phase project analysis and memory-bank generation."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
        )


def _fail(message: str) -> NoReturn:
    console.print(f"[red]✗[/red] {escape(message)}")
    raise typer.Exit(code=1)


def _default_depth(depth: Optional[AnalysisDepth]) -> AnalysisDepth:
    return depth or AnalysisDepth(load_settings().analysis.depth)


def _run_analysis(project_path: Path, depth: Optional[AnalysisDepth]) -> AnalysisSnapshot:
    try:
        root = sanitize_project_path(project_path)
    except MemoryBankError as exc:
        _fail(exc.message)
    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console, transient=True) as progress:
        progress.add_task(f"Analyzing {root.name}...", total=None)
        return asyncio.run(run_pipeline(root, _default_depth(depth)))


# ===================================================================
# Inspection commands
# ===================================================================

@app.command("scan")
def scan(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    depth: Optional[AnalysisDepth] = typer.Option(None, "--depth", "-d", help="Walk depth: shallow, standard or deep."),
):
    """Inventory source files and show language and parse statistics."""
    snapshot = _run_analysis(project_path, depth)
    stats = snapshot.stats

    table = Table(title=f"Source files in {snapshot.profile.name}")
    table.add_column("Language", style="cyan")
    table.add_column("Files", justify="right")
    for language, count in sorted(stats.languages.items(), key=lambda kv: kv[1], reverse=True):
        table.add_row(language, str(count))
    console.print(table)

    console.print(
        f"Files: {stats.total_files} | Parsed: {stats.parsed_files} | Failed: {stats.failed_files} "
        f"| Completeness: {stats.completeness}%"
    )
    console.print(
        f"Functions: {stats.total_functions} | Classes: {stats.total_classes} "
        f"| Interfaces: {stats.total_interfaces} | Complexity: {stats.complexity_bucket}"
    )
    failed = [s.file_path for s in snapshot.structures if not s.success]
    for path in failed:
        console.print(f"[yellow]⚠[/yellow] could not parse {path}")


@app.command("graph")
def graph(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    depth: Optional[AnalysisDepth] = typer.Option(None, "--depth", "-d", help="Walk depth: shallow, standard or deep."),
):
    """Show the file dependency graph: nodes, clusters, cycles and critical paths."""
    rel = _run_analysis(project_path, depth).graph
    if rel.is_empty():
        console.print("No internal dependencies found.")
        raise typer.Exit(code=0)

    table = Table(title=f"Dependency graph ({len(rel.nodes)} files, {rel.edge_count} edges)")
    table.add_column("File", style="cyan")
    table.add_column("Imports", justify="right")
    table.add_column("Dependents", justify="right")
    table.add_column("Importance", justify="right")
    table.add_column("Cycle risk", justify="right")
    for node in sorted(rel.nodes.values(), key=lambda n: n.importance, reverse=True):
        table.add_row(
            node.file_path,
            str(len(node.dependencies)),
            str(len(node.dependents)),
            str(node.importance),
            f"{node.cycle_risk:.1f}",
        )
    console.print(table)

    for cluster in rel.strongly_connected_components:
        console.print(f"[bold]Cluster[/bold] ({cluster.purpose}, cohesion {cluster.cohesion}): {', '.join(cluster.files)}")
    for cycle in rel.cycles:
        console.print(f"[red]Cycle[/red]: {' -> '.join(cycle)}")
    for path in rel.critical_paths:
        console.print(f"[yellow]Critical path[/yellow] (risk {path.risk_score}): {' -> '.join(path.files)}")


@app.command("export-graph")
def export_graph(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    output: Path = typer.Argument(..., dir_okay=False, help="Output .dot file."),
    depth: Optional[AnalysisDepth] = typer.Option(None, "--depth", "-d", help="Walk depth: shallow, standard or deep."),
):
    """Export the dependency graph to Graphviz DOT."""
    snapshot = _run_analysis(project_path, depth)
    export_dot(snapshot.graph, output)
    typer.echo(f"Exported graph to {output}")


# ===================================================================
# Two-phase workflow
# ===================================================================

@app.command("analyze")
def analyze(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    depth: Optional[AnalysisDepth] = typer.Option(None, "--depth", "-d", help="Walk depth: shallow, standard or deep."),
    save_prompts: Optional[Path] = typer.Option(None, "--save-prompts", help="Write prompts to this directory instead of printing them."),
):
    """Phase 1: analyze a project and emit the six memory-bank prompts."""
    orchestrator = MemoryBankOrchestrator()

    async def _analyze() -> Phase1Result:
        async with orchestrator:
            return await orchestrator.analyze(project_path, depth)

    try:
        result = asyncio.run(_analyze())
    except MemoryBankError as exc:
        _fail(exc.message)

    SessionStore().save(orchestrator.cache, result.analysis_id)
    remaining = orchestrator.cache.time_remaining(result.analysis_id)

    console.print(Panel(
        f"Analysis ID: [bold]{result.analysis_id}[/bold]\n"
        f"Files analyzed: {result.files_analyzed}\n"
        f"Estimated prompt tokens: {result.estimated_tokens}\n"
        f"Key patterns: {', '.join(result.key_patterns) or 'none'}\n"
        f"Expires: {format_time_remaining(remaining)}",
        title="✅ Phase 1 complete",
        border_style="green",
    ))

    wire = result.prompts.to_wire()
    if save_prompts is not None:
        save_prompts.mkdir(parents=True, exist_ok=True)
        for slot, text in wire.items():
            (save_prompts / f"{slot}.md").write_text(text, encoding="utf-8")
        (save_prompts / "analysis.json").write_text(
            json.dumps({
                "analysis_id": result.analysis_id,
                "phase": result.phase,
                "slots": list(wire),
                "instructions": result.instructions,
            }, indent=2),
            encoding="utf-8",
        )
        console.print(f"Prompts written to {save_prompts}")
    else:
        for slot, text in wire.items():
            console.print(Panel(escape(text), title=slot, border_style="cyan"))

    console.print(result.instructions)


def _print_phase2(result: Phase2Result) -> None:
    table = Table(title="Quality metrics")
    table.add_column("Dimension", style="cyan")
    table.add_column("Score", justify="right")
    for f in fields(result.quality):
        table.add_row(f.name.replace("_", " "), str(getattr(result.quality, f.name)))
    console.print(table)

    if result.phase == "complete":
        console.print(f"[green]✓[/green] Memory bank written to {result.output_dir}")
        for name in result.files:
            console.print(f"  • {name}")
        return

    console.print("[yellow]Quality gate not met. Revise the responses and run process again:[/yellow]")
    for req in result.enhancement_requests:
        console.print(f"  • [bold]{req.dimension}[/bold] ({req.score} < {req.threshold}): {req.message}")


@app.command("process")
def process(
    analysis_id: str = typer.Argument(..., help="Analysis ID printed by 'mb analyze'."),
    responses_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON object of slot name -> response."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (inside the project)."),
):
    """Phase 2: score the responses and write the memory bank when they pass."""
    try:
        data = json.loads(responses_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Cannot read responses: {exc}")
    if not isinstance(data, dict):
        raise typer.BadParameter("Responses must be a JSON object keyed by slot name.")

    orchestrator = MemoryBankOrchestrator()
    sessions = SessionStore()
    try:
        sessions.load_into(orchestrator.cache, analysis_id)
    except ValueError as exc:
        _fail(str(exc))

    async def _process() -> Phase2Result:
        async with orchestrator:
            return await orchestrator.process(analysis_id, data, output)

    try:
        result = asyncio.run(_process())
    except CacheError as exc:
        if isinstance(exc, CacheExpiredError):
            sessions.delete(analysis_id)
        _fail(exc.message)
    except ValidationError as exc:
        _fail(exc.message)
    except MemoryBankError as exc:
        _fail(exc.message)

    if result.phase == "complete":
        sessions.delete(analysis_id)
    _print_phase2(result)


@app.command("generate")
def generate(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    depth: Optional[AnalysisDepth] = typer.Option(None, "--depth", "-d", help="Walk depth: shallow, standard or deep."),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="LLM provider: ollama, groq, openai, anthropic."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="LLM model name."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (inside the project)."),
):
    """Run both phases in one go, answering the prompts with the configured LLM."""
    llm = LocalLLM(model=model, provider=provider)

    async def _both() -> Phase2Result:
        async with MemoryBankOrchestrator() as orchestrator:
            phase1 = await orchestrator.analyze(project_path, depth)
            console.print(f"Analysis {phase1.analysis_id}: {phase1.files_analyzed} files")
            responses = await asyncio.to_thread(llm.generate_responses, phase1.prompts)
            return await orchestrator.process(phase1.analysis_id, responses, output)

    try:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console, transient=True) as progress:
            progress.add_task(f"Generating with {llm.provider_name}...", total=None)
            result = asyncio.run(_both())
    except ValidationError as exc:
        _fail(f"{exc.message} (is the '{llm.provider_name}' provider reachable?)")
    except MemoryBankError as exc:
        _fail(exc.message)

    _print_phase2(result)


# ===================================================================
# Configuration
# ===================================================================

@config_app.command("show")
def config_show():
    """Show the effective configuration."""
    settings = load_settings()
    table = Table(title="Configuration")
    table.add_column("Section", style="cyan")
    table.add_column("Key")
    table.add_column("Value")
    for section in ("cache", "quality", "analysis"):
        group = getattr(settings, section)
        for f in fields(group):
            table.add_row(section, f.name, str(getattr(group, f.name)))
    for key, value in load_llm_config().items():
        if key == "api_key" and value:
            value = value[:4] + "..." if len(value) > 8 else "***"
        table.add_row("llm", key, str(value))
    console.print(table)


@config_app.command("set")
def config_set(
    section: str = typer.Argument(..., help=f"One of: {', '.join(SECTIONS)}."),
    key: str = typer.Argument(..., help="Setting name within the section."),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist a single configuration value."""
    if section == "llm":
        converted = value
    else:
        group = getattr(Settings(), section, None)
        known = {f.name for f in fields(group)} if group is not None else set()
        if group is not None and key not in known:
            _fail(f"Unknown key '{key}' for section '{section}'. Known: {', '.join(sorted(known))}")
        try:
            converted = type(getattr(group, key))(value) if group is not None else value
            if section == "analysis" and key == "depth":
                AnalysisDepth(converted)
        except ValueError:
            _fail(f"Invalid value for {section}.{key}: {value!r}")

    try:
        saved = save_config(section, {key: converted})
    except ConfigurationError as exc:
        _fail(exc.message)
    if not saved:
        _fail("Could not write the configuration file.")
    console.print(f"[green]✓[/green] {section}.{key} = {converted}")


if __name__ == "__main__":
    app()
