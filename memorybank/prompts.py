"""Phase 1 prompt builders: one self-contained request per memory-bank section."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import List

from .models import AnalysisSnapshot, ParsedStructure, PromptSet

MAX_LISTED = 15


def _bullets(items: List[str], empty: str = "none detected", limit: int = MAX_LISTED) -> str:
    if not items:
        return f"- {empty}"
    lines = [f"- {item}" for item in items[:limit]]
    if len(items) > limit:
        lines.append(f"- ... and {len(items) - limit} more")
    return "\n".join(lines)


def _language_summary(snapshot: AnalysisSnapshot) -> str:
    langs = sorted(snapshot.stats.languages.items(), key=lambda kv: kv[1], reverse=True)
    return ", ".join(f"{name} ({count})" for name, count in langs) or "unknown"


def _key_files(snapshot: AnalysisSnapshot) -> List[str]:
    ranked = sorted(
        snapshot.graph.nodes.values(),
        key=lambda n: (n.importance, len(n.dependencies)),
        reverse=True,
    )
    return [f"{n.file_path} (importance {n.importance})" for n in ranked[:10]]


def _structure_overview(snapshot: AnalysisSnapshot) -> str:
    stats = snapshot.stats
    return (
        f"{stats.total_files} source files, {stats.total_functions} functions, "
        f"{stats.total_classes} classes, {stats.total_interfaces} interfaces; "
        f"{stats.completeness}% parsed successfully; complexity: {stats.complexity_bucket}"
    )


def _graph_highlights(snapshot: AnalysisSnapshot) -> str:
    graph = snapshot.graph
    lines = [
        f"- {len(graph.nodes)} files in the dependency graph, {graph.edge_count} internal import edges",
        f"- {len(graph.strongly_connected_components)} connected component clusters",
        f"- {len(graph.cycles)} dependency cycles",
    ]
    for cluster in graph.strongly_connected_components[:3]:
        lines.append(f"- Cluster ({cluster.purpose}): {', '.join(cluster.files[:6])}")
    for cycle in graph.cycles[:3]:
        lines.append(f"- Cycle: {' -> '.join(cycle)}")
    for path in graph.critical_paths[:3]:
        lines.append(f"- Critical path: {' -> '.join(path.files)}")
    return "\n".join(lines)


def _context_footer(snapshot: AnalysisSnapshot) -> str:
    analyzed = datetime.fromtimestamp(snapshot.timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return f"""
**Project Analysis Context:**
- Root Path: {snapshot.root_path}
- Total Files: {snapshot.stats.total_files}
- Languages: {_language_summary(snapshot)}
- Analysis Date: {analyzed}

**Quality Standards:**
- Name concrete files, modules, classes and functions from this project
- Use a professional, precise tone suitable for senior engineers and stakeholders
- Structure the answer with markdown headings and short paragraphs
- Do not invent components that the analysis above does not show"""


def build_brief_prompt(snapshot: AnalysisSnapshot) -> str:
    profile = snapshot.profile
    return f"""Please provide a detailed description of the project located at {snapshot.root_path}.

Project: {profile.name} (version {profile.version})
Type: {profile.project_type}
Description on record: {profile.description}

Key files:
{_bullets(_key_files(snapshot))}

Structure overview: {_structure_overview(snapshot)}

Focus on:
- The core purpose and the problem the project solves
- The main capabilities and how the key files above deliver them
- Scope boundaries: what the project deliberately does not do
- Target users and how they interact with it

Requirements:
- Open with a one-paragraph summary
- Reference the key files by path
- Keep it factual and specific to this codebase
{_context_footer(snapshot)}"""


def build_tech_prompt(snapshot: AnalysisSnapshot) -> str:
    profile = snapshot.profile
    return f"""Document the technical context of this project for an engineer joining the team.

Frameworks and libraries:
{_bullets(profile.frameworks)}

Declared dependencies:
{_bullets(profile.dependencies)}

Configuration files:
{_bullets(profile.config_files)}

Directory layout:
{_bullets(profile.directories)}

Primary languages: {_language_summary(snapshot)}

Analyze and document:

## Architecture Deep Dive
- Core design patterns and where they are implemented
- Layering and separation of concerns
- Dependency management between modules

## Technology Stack Analysis
- How each framework above is configured and used
- Build, test and runtime tooling

## Code Organization Principles
- Directory conventions and module boundaries
- Configuration, error handling and logging approach
{_context_footer(snapshot)}"""


def build_patterns_prompt(snapshot: AnalysisSnapshot) -> str:
    profile = snapshot.profile
    layers = [f"{layer.name}: {len(layer.files)} files" for layer in snapshot.graph.layers]
    return f"""Identify and document the key patterns, practices and conventions used throughout this codebase.

Detected organizational patterns:
{_bullets(profile.architecture_patterns)}

Architectural layers by path:
{_bullets(layers)}

Dependency graph highlights:
{_graph_highlights(snapshot)}

Document:

## Architectural Patterns
- Structural and creational patterns in use, with file references

## Development Practices
- Naming conventions, module structure, testing practices

## Data Handling Patterns
- Data access, validation, serialization and caching approaches
{_context_footer(snapshot)}"""


def build_product_prompt(snapshot: AnalysisSnapshot) -> str:
    profile = snapshot.profile
    return f"""Based on the codebase analysis, describe the product context and value of {profile.name}.

Project type: {profile.project_type}
Description on record: {profile.description}
Entry points:
{_bullets(profile.entry_points)}

Explain:

## Business Purpose
- What problem the system solves and for whom

## Value Proposition
- Key benefits delivered and the workflows they improve

## Business Domain Context
- Domain concepts and terminology visible in the code

## Stakeholder Impact
- How different users interact with the system and what depends on it
{_context_footer(snapshot)}"""


def build_active_prompt(snapshot: AnalysisSnapshot) -> str:
    recent = sorted(snapshot.files, key=lambda f: f.modified, reverse=True)[:10]
    failed = [s.file_path for s in snapshot.structures if not s.success]
    return f"""Describe the active development context of this project: current state and ongoing work.

Most recently modified files:
{_bullets([f.relative_path for f in recent])}

Files that could not be parsed:
{_bullets(failed, empty="none")}

Document:

## Current Development State
- Development phase and actively maintained areas

## Active Areas of Focus
- Components with recent changes and the work they suggest

## Development Priorities
- Quality, dependency and testing work in progress

## Next Steps
- Concrete follow-ups grounded in the files above
{_context_footer(snapshot)}"""


def build_progress_prompt(snapshot: AnalysisSnapshot) -> str:
    structured = [s for s in snapshot.structures if isinstance(s, ParsedStructure)]
    complex_functions = sorted(
        ((f.complexity, f"{s.file_path}:{f.name}") for s in structured for f in s.functions),
        reverse=True,
    )
    hotspots = [f"{name} (complexity {score})" for score, name in complex_functions[:8]]
    return f"""Provide a progress report and status overview for this project.

Structure overview: {_structure_overview(snapshot)}

Complexity hotspots:
{_bullets(hotspots)}

Document:

## Development Progress
- Implementation status of the major features and modules

## Implementation Status
- What is working and tested, and what needs refinement

## Project Health
- Signals of maturity, technical debt and maintainability

## Future Roadmap
- Planned expansions suggested by the current structure
{_context_footer(snapshot)}"""


def build_prompt_set(snapshot: AnalysisSnapshot) -> PromptSet:
    return PromptSet(
        project_brief=build_brief_prompt(snapshot),
        product_context=build_product_prompt(snapshot),
        active_context=build_active_prompt(snapshot),
        system_patterns=build_patterns_prompt(snapshot),
        tech_context=build_tech_prompt(snapshot),
        progress=build_progress_prompt(snapshot),
    )


def estimate_tokens(prompts: PromptSet) -> int:
    return math.ceil(sum(len(text) for _, text in prompts.items()) / 4)


PHASE1_INSTRUCTIONS = """Send each of the six prompts to your language model and collect one answer per slot:
brief, product-context, active-context, system-patterns, tech-context, progress.
Then run Phase 2 with the analysis id and the answers (for the CLI, a JSON object keyed by slot name):

    mb process <analysis-id> responses.json

Each answer must contain at least {min_length} characters. The analysis expires in {ttl_minutes} minutes."""
