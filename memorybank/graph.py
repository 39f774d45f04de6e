"""Relationship graph builder: file-level dependencies, cycles, paths and clusters."""

from __future__ import annotations

import logging
import posixpath
from typing import Dict, Iterable, List, Optional, Set

import networkx as nx

from .models import (
    ArchitecturalLayer,
    ComponentCluster,
    CriticalPath,
    DependencyEdge,
    DependencyNode,
    DependentEdge,
    ImportDescriptor,
    ParsedStructure,
    RelationshipGraph,
    RiskFactor,
    StructuralRecord,
)
from .scoring import DefaultScoring, ScoringStrategy

logger = logging.getLogger(__name__)

ENTRY_HINTS = ("main", "index", "app")
EXIT_HINTS = ("output", "export", "response")
MAX_CRITICAL_PATHS = 10

_SCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".d.ts")
_LAYER_RULES = (
    ("controllers", ("controller",)),
    ("services", ("service",)),
    ("models", ("model", "entity")),
    ("views", ("view", "component")),
    ("data", ("repository", "dao")),
    ("utilities", ("util", "helper")),
)


def build_relationship_graph(
    structures: Iterable[StructuralRecord],
    scoring: Optional[ScoringStrategy] = None,
) -> RelationshipGraph:
    """Build the :class:`RelationshipGraph` for a set of structural records.

    Never raises: on an internal failure the error is logged and an empty
    graph is returned so the rest of the analysis can proceed.
    """
    try:
        return _GraphBuilder(scoring or DefaultScoring()).build(list(structures))
    except Exception as exc:
        logger.warning("Relationship mapping failed: %s", exc, exc_info=True)
        return RelationshipGraph()


class _GraphBuilder:
    def __init__(self, scoring: ScoringStrategy) -> None:
        self.scoring = scoring
        self.nodes: Dict[str, DependencyNode] = {}
        self.digraph = nx.DiGraph()

    def build(self, structures: List[StructuralRecord]) -> RelationshipGraph:
        self._init_nodes(structures)
        self._resolve_edges()
        cycles = self._find_cycles()
        self._derive_metrics(cycles)
        return RelationshipGraph(
            nodes=self.nodes,
            strongly_connected_components=self._clusters(),
            cycles=[sorted(c) for c in cycles],
            critical_paths=self._critical_paths(cycles),
            layers=self._layers(),
        )

    # ------------------------------------------------------------------
    # 1-2. Nodes and edges
    # ------------------------------------------------------------------

    def _init_nodes(self, structures: List[StructuralRecord]) -> None:
        for record in structures:
            if not record.success:
                continue
            node = DependencyNode(file_path=record.file_path)
            if isinstance(record, ParsedStructure):
                node.imports = list(record.imports)
                node.exports = list(record.exports)
            self.nodes[record.file_path] = node
            self.digraph.add_node(record.file_path)

    def _resolve_edges(self) -> None:
        for source, node in self.nodes.items():
            for imp in node.imports:
                if imp.is_external:
                    continue
                for target in self._resolve(source, imp):
                    self._add_edge(source, target, imp)

    def _add_edge(self, source: str, target: str, imp: ImportDescriptor) -> None:
        if self.digraph.has_edge(source, target):
            return
        strength = self.scoring.edge_strength(source, target, imp)
        import_type = _import_type(imp)
        self.nodes[source].dependencies.append(DependencyEdge(target, import_type, strength))
        self.nodes[target].dependents.append(DependentEdge(source, import_type, strength))
        self.digraph.add_edge(source, target, import_type=import_type, strength=strength)

    def _resolve(self, source: str, imp: ImportDescriptor) -> List[str]:
        if source.endswith(".py"):
            return self._resolve_python(source, imp)
        return self._resolve_script(source, imp.module)

    def _resolve_python(self, source: str, imp: ImportDescriptor) -> List[str]:
        level = len(imp.module) - len(imp.module.lstrip("."))
        base = posixpath.dirname(source)
        for _ in range(level - 1):
            base = posixpath.dirname(base)
        rest = imp.module[level:].replace(".", "/")
        stem = posixpath.join(base, rest) if rest else base

        def candidates(path: str) -> List[str]:
            return [f"{path}.py", posixpath.join(path, "__init__.py")]

        if rest:
            found = self._first_existing(candidates(stem))
            if found:
                return [found]
            return []

        targets = []
        for name in imp.names:
            found = self._first_existing(candidates(posixpath.join(stem, name)))
            if found:
                targets.append(found)
        package_init = posixpath.join(stem, "__init__.py")
        if not targets and package_init in self.nodes and package_init != source:
            targets.append(package_init)
        return targets

    def _resolve_script(self, source: str, spec: str) -> List[str]:
        if spec.startswith("/"):
            joined = posixpath.normpath(spec.lstrip("/"))
        else:
            joined = posixpath.normpath(posixpath.join(posixpath.dirname(source), spec))
        stem, ext = posixpath.splitext(joined)
        options = [joined]
        if ext in (".js", ".jsx"):
            options += [stem + ".ts", stem + ".tsx"]
        options += [joined + e for e in _SCRIPT_EXTENSIONS]
        options += [posixpath.join(joined, "index" + e) for e in _SCRIPT_EXTENSIONS]
        found = self._first_existing(options)
        return [found] if found else []

    def _first_existing(self, options: List[str]) -> Optional[str]:
        for option in options:
            if option in self.nodes:
                return option
        return None

    # ------------------------------------------------------------------
    # 3. Derived metrics
    # ------------------------------------------------------------------

    def _find_cycles(self) -> List[Set[str]]:
        cycles = []
        for component in nx.strongly_connected_components(self.digraph):
            if len(component) > 1:
                cycles.append(set(component))
            else:
                (only,) = component
                if self.digraph.has_edge(only, only):
                    cycles.append(set(component))
        return cycles

    def _derive_metrics(self, cycles: List[Set[str]]) -> None:
        for path, node in self.nodes.items():
            node.importance = len(node.dependents) + len(node.exports)
            node.cycle_risk = self.scoring.cycle_risk(path, cycles)

    # ------------------------------------------------------------------
    # 4-5. Entry/exit inference and critical paths
    # ------------------------------------------------------------------

    def entry_points(self) -> List[str]:
        return [
            path for path, node in self.nodes.items()
            if not node.dependencies or _matches(path, ENTRY_HINTS)
        ]

    def exit_points(self) -> List[str]:
        return [
            path for path, node in self.nodes.items()
            if not node.dependents or _matches(path, EXIT_HINTS)
        ]

    def _critical_paths(self, cycles: List[Set[str]]) -> List[CriticalPath]:
        in_cycle: Set[str] = set().union(*cycles) if cycles else set()
        exits = set(self.exit_points())
        # Walk from an entry toward the files that consume it.
        consumers = self.digraph.reverse(copy=False)

        found: List[CriticalPath] = []
        for entry in self.entry_points():
            reachable = nx.single_source_shortest_path(consumers, entry)
            for exit_point in sorted(exits):
                if exit_point == entry or exit_point not in reachable:
                    continue
                files = reachable[exit_point]
                if len(files) <= 2:
                    continue
                factors = [RiskFactor(
                    type="complexity",
                    description=f"Path crosses {len(files)} files",
                )]
                if in_cycle.intersection(files):
                    factors.append(RiskFactor(
                        type="circular-dependency",
                        description="Path passes through a dependency cycle",
                        probability="high",
                    ))
                mitigation = ["Simplify path"]
                if len(factors) > 1:
                    mitigation.append("Break the dependency cycle")
                found.append(CriticalPath(
                    files=list(files),
                    risk_factors=factors,
                    risk_score=sum(self.scoring.risk_score(f) for f in factors),
                    mitigation=mitigation,
                ))

        found.sort(key=lambda p: p.risk_score, reverse=True)
        return found[:MAX_CRITICAL_PATHS]

    # ------------------------------------------------------------------
    # 6. Clusters
    # ------------------------------------------------------------------

    def _clusters(self) -> List[ComponentCluster]:
        undirected = self.digraph.to_undirected(as_view=True)
        visited: Set[str] = set()
        clusters: List[ComponentCluster] = []
        for start in self.nodes:
            if start in visited:
                continue
            members = nx.node_connected_component(undirected, start)
            visited.update(members)
            if len(members) < 2:
                continue
            files = sorted(members)
            subgraph = self.digraph.subgraph(files)
            possible = len(files) * (len(files) - 1)
            clusters.append(ComponentCluster(
                files=files,
                cohesion=round(subgraph.number_of_edges() / possible, 3) if possible else 0.0,
                purpose=_cluster_purpose(files),
                refactoring_hint="Consider breaking down into smaller, more focused components",
            ))
        return sorted(clusters, key=lambda c: c.cohesion, reverse=True)

    # ------------------------------------------------------------------
    # 7. Architectural layers
    # ------------------------------------------------------------------

    def _layers(self) -> List[ArchitecturalLayer]:
        grouped: Dict[str, List[str]] = {}
        for path in self.nodes:
            grouped.setdefault(layer_for(path), []).append(path)
        return [ArchitecturalLayer(name, sorted(files)) for name, files in sorted(grouped.items())]


def _matches(path: str, hints: Iterable[str]) -> bool:
    lowered = path.lower()
    return any(hint in lowered for hint in hints)


def _import_type(imp: ImportDescriptor) -> str:
    if "*" in imp.names:
        return "namespace"
    if not imp.names:
        return "side-effect"
    return "named"


def _cluster_purpose(files: List[str]) -> str:
    if any("service" in f for f in files):
        return "Business logic services"
    if any("controller" in f for f in files):
        return "API controllers"
    if any("model" in f for f in files):
        return "Data models"
    return "General purpose components"


def layer_for(path: str) -> str:
    lowered = path.lower()
    for layer, keywords in _LAYER_RULES:
        if any(k in lowered for k in keywords):
            return layer
    return "core"


def to_networkx(graph: RelationshipGraph) -> nx.DiGraph:
    """Rebuild a ``networkx.DiGraph`` view of a finished graph."""
    g = nx.DiGraph()
    for path, node in graph.nodes.items():
        g.add_node(path, importance=node.importance, cycle_risk=node.cycle_risk)
        for edge in node.dependencies:
            g.add_edge(path, edge.target, import_type=edge.import_type, strength=edge.strength)
    return g
