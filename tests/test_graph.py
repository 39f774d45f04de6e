"""Tests for the relationship graph builder."""

from pathlib import Path
from typing import List

import pytest

from memorybank import graph as graph_module
from memorybank.extractor import extract_structures
from memorybank.graph import build_relationship_graph, layer_for, to_networkx
from memorybank.models import (
    ExportDescriptor,
    FailedStructure,
    ImportDescriptor,
    ParsedStructure,
    RiskFactor,
    ShallowStructure,
)
from memorybank.scanner import scan_project
from memorybank.scoring import DefaultScoring


def ts(path: str, *specs: str) -> ParsedStructure:
    """A TypeScript record importing each relative specifier by name."""
    return ParsedStructure(
        file_path=path,
        language="typescript",
        imports=[ImportDescriptor(module=s, names=["x"], is_external=False) for s in specs],
    )


async def _sample_graph(root: Path):
    inventory = await scan_project(root)
    return build_relationship_graph(await extract_structures(inventory.files))


class TestEdges:
    """Import resolution and edge bookkeeping."""

    def test_relative_import_creates_paired_edge(self):
        """Test A importing B by relative path links both nodes."""
        rel = build_relationship_graph([ts("src/a.ts", "./b"), ts("src/b.ts")])

        assert set(rel.nodes) == {"src/a.ts", "src/b.ts"}
        assert [e.target for e in rel.nodes["src/a.ts"].dependencies] == ["src/b.ts"]
        assert [e.source for e in rel.nodes["src/b.ts"].dependents] == ["src/a.ts"]
        assert rel.nodes["src/a.ts"].dependencies[0].import_type == "named"
        assert rel.edge_count == 1

    def test_index_and_js_extension_resolution(self):
        """Test directory index files and .js specifiers pointing at .ts sources."""
        rel = build_relationship_graph([
            ts("src/app.ts", "./lib", "./util.js"),
            ts("src/lib/index.ts"),
            ts("src/util.ts"),
        ])
        targets = sorted(e.target for e in rel.nodes["src/app.ts"].dependencies)
        assert targets == ["src/lib/index.ts", "src/util.ts"]

    def test_external_and_unresolved_imports_are_ignored(self):
        """Test external modules and missing files add no edges."""
        record = ParsedStructure(
            file_path="a.ts",
            language="typescript",
            imports=[
                ImportDescriptor(module="react", names=["useState"], is_external=True),
                ImportDescriptor(module="./missing", names=["x"], is_external=False),
            ],
        )
        rel = build_relationship_graph([record])
        assert rel.edge_count == 0

    def test_duplicate_imports_add_one_edge(self):
        """Test two imports of the same file produce a single edge."""
        rel = build_relationship_graph([ts("a.ts", "./b", "./b.ts"), ts("b.ts")])
        assert len(rel.nodes["a.ts"].dependencies) == 1
        assert len(rel.nodes["b.ts"].dependents) == 1

    def test_failed_records_are_excluded(self):
        """Test failed records get no node and shallow records do."""
        rel = build_relationship_graph([
            ts("a.ts", "./b"),
            FailedStructure(file_path="b.ts", language="typescript"),
            ShallowStructure(file_path="c.go", language="go"),
        ])
        assert set(rel.nodes) == {"a.ts", "c.go"}
        assert rel.edge_count == 0

    @pytest.mark.asyncio
    async def test_python_relative_imports(self, sample_project_path: Path):
        """Test the sample project's relative imports resolve to files."""
        rel = await _sample_graph(sample_project_path)

        deps = {p: sorted(e.target for e in n.dependencies) for p, n in rel.nodes.items()}
        assert deps == {
            "main.py": ["models.py", "processor.py", "utils.py"],
            "models.py": [],
            "processor.py": ["models.py", "utils.py"],
            "utils.py": [],
        }

    @pytest.mark.asyncio
    async def test_edges_are_symmetric(self, ts_project_path: Path, sample_project_path: Path):
        """Test every dependency appears as the target's dependent and vice versa."""
        for root in (ts_project_path, sample_project_path):
            rel = await _sample_graph(root)
            for path, node in rel.nodes.items():
                for edge in node.dependencies:
                    assert path in [d.source for d in rel.nodes[edge.target].dependents]
                for edge in node.dependents:
                    assert path in [d.target for d in rel.nodes[edge.source].dependencies]

    def test_python_package_imports(self):
        """Test `from . import mod` and parent-relative imports."""
        rel = build_relationship_graph([
            ParsedStructure(
                file_path="pkg/sub/a.py",
                language="python",
                imports=[
                    ImportDescriptor(module=".", names=["b"], is_external=False),
                    ImportDescriptor(module="..core", names=["run"], is_external=False),
                ],
            ),
            ParsedStructure(file_path="pkg/sub/b.py", language="python"),
            ParsedStructure(file_path="pkg/core/__init__.py", language="python"),
        ])
        targets = sorted(e.target for e in rel.nodes["pkg/sub/a.py"].dependencies)
        assert targets == ["pkg/core/__init__.py", "pkg/sub/b.py"]


class TestMetrics:
    """Importance, cycles and cycle risk."""

    def test_importance_counts_dependents_and_exports(self):
        """Test importance = dependents + exports."""
        record = ts("b.ts")
        record.exports = [ExportDescriptor(name="x")]
        rel = build_relationship_graph([ts("a.ts", "./b"), ts("c.ts", "./b"), record])
        assert rel.nodes["b.ts"].importance == 3
        assert rel.nodes["a.ts"].importance == 0

    def test_cycle_detection(self):
        """Test a two-file cycle is reported and drives cycle risk."""
        rel = build_relationship_graph([ts("a.ts", "./b"), ts("b.ts", "./a"), ts("c.ts", "./a")])

        assert rel.cycles == [["a.ts", "b.ts"]]
        assert rel.nodes["a.ts"].cycle_risk == 1.0
        assert rel.nodes["b.ts"].cycle_risk == 1.0
        assert rel.nodes["c.ts"].cycle_risk == 0.0

    def test_self_import_is_a_cycle(self):
        """Test a file importing itself counts as a cycle."""
        rel = build_relationship_graph([ts("a.ts", "./a")])
        assert rel.cycles == [["a.ts"]]

    def test_custom_scoring_strategy(self):
        """Test a scoring strategy controls edge strength and risk scores."""

        class Weighted(DefaultScoring):
            def edge_strength(self, source, target, imp):
                return 0.5

            def risk_score(self, factor: RiskFactor) -> float:
                return 3.0

        rel = build_relationship_graph([ts("a.ts", "./b"), ts("b.ts", "./c"), ts("c.ts")], Weighted())
        assert rel.nodes["a.ts"].dependencies[0].strength == 0.5
        assert rel.critical_paths[0].risk_score == 3.0


class TestCriticalPaths:
    """Entry to exit path enumeration."""

    def test_chain_yields_critical_path(self):
        """Test a three-file chain produces one path from entry to exit."""
        rel = build_relationship_graph([ts("a.ts", "./b"), ts("b.ts", "./c"), ts("c.ts")])

        (path,) = rel.critical_paths
        assert path.files == ["c.ts", "b.ts", "a.ts"]
        assert [f.type for f in path.risk_factors] == ["complexity"]
        assert path.mitigation == ["Simplify path"]
        assert path.risk_score == 1.0

    def test_two_file_paths_are_dropped(self):
        """Test paths of two files or fewer are not critical."""
        rel = build_relationship_graph([ts("a.ts", "./b"), ts("b.ts")])
        assert rel.critical_paths == []

    def test_path_through_cycle_is_riskier(self):
        """Test a path touching a cycle gets a circular-dependency factor."""
        rel = build_relationship_graph([
            ts("d.ts"),
            ts("b.ts", "./a", "./d"),
            ts("a.ts", "./b"),
            ts("c.ts", "./a"),
        ])
        path = rel.critical_paths[0]
        assert path.files == ["d.ts", "b.ts", "a.ts", "c.ts"]
        assert {f.type for f in path.risk_factors} == {"complexity", "circular-dependency"}
        assert path.risk_score == 2.0
        assert "Break the dependency cycle" in path.mitigation

    def test_paths_sorted_and_capped(self, monkeypatch):
        """Test paths are sorted by risk and limited to the maximum."""
        monkeypatch.setattr(graph_module, "MAX_CRITICAL_PATHS", 2)
        records: List[ParsedStructure] = [ts("base.ts")]
        for i in range(4):
            records.append(ts(f"mid{i}.ts", "./base"))
            records.append(ts(f"top{i}.ts", f"./mid{i}"))
        rel = build_relationship_graph(records)
        assert len(rel.critical_paths) == 2
        scores = [p.risk_score for p in rel.critical_paths]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_ts_project_path(self, ts_project_path: Path):
        """Test the TypeScript fixture has one model-to-entry path."""
        rel = await _sample_graph(ts_project_path)
        assert [p.files for p in rel.critical_paths] == [
            ["src/models/user.ts", "src/services/userService.ts", "src/index.ts"],
        ]

    def test_no_imports_means_no_paths_or_clusters(self):
        """Test a project without cross-file imports has no paths or clusters."""
        rel = build_relationship_graph([ts("a.ts"), ts("b.ts"), ts("main.ts")])
        assert rel.critical_paths == []
        assert rel.strongly_connected_components == []
        assert rel.cycles == []


class TestClustersAndLayers:
    """Connected clusters and path-based layers."""

    @pytest.mark.asyncio
    async def test_sample_project_cluster(self, sample_project_path: Path):
        """Test the sample project forms one cluster with edge-density cohesion."""
        rel = await _sample_graph(sample_project_path)

        (cluster,) = rel.strongly_connected_components
        assert cluster.files == ["main.py", "models.py", "processor.py", "utils.py"]
        assert cluster.cohesion == pytest.approx(0.417)
        assert cluster.purpose == "Data models"
        assert rel.critical_paths == []

    def test_clusters_sorted_by_cohesion(self):
        """Test the densest cluster comes first."""
        rel = build_relationship_graph([
            ts("a.ts", "./b"), ts("b.ts", "./a"),
            ts("svc/x.service.ts", "./y"), ts("svc/y.ts", "./z"), ts("svc/z.ts"),
        ])
        first, second = rel.strongly_connected_components
        assert first.files == ["a.ts", "b.ts"]
        assert first.cohesion == 1.0
        assert second.purpose == "Business logic services"

    def test_layers(self):
        """Test paths are bucketed into layers by keyword."""
        assert layer_for("src/controllers/userController.ts") == "controllers"
        assert layer_for("src/services/userService.ts") == "services"
        assert layer_for("src/models/user.ts") == "models"
        assert layer_for("src/utils/date.ts") == "utilities"
        assert layer_for("src/index.ts") == "core"

    def test_to_networkx(self):
        """Test the finished graph converts back to a DiGraph."""
        rel = build_relationship_graph([ts("a.ts", "./b"), ts("b.ts")])
        digraph = to_networkx(rel)
        assert digraph.has_edge("a.ts", "b.ts")
        assert digraph.nodes["b.ts"]["importance"] == 1


class TestFailureHandling:
    """Graph building never raises."""

    def test_internal_error_degrades_to_empty_graph(self):
        """Test a failing scoring strategy yields an empty graph."""

        class Broken(DefaultScoring):
            def edge_strength(self, source, target, imp):
                raise RuntimeError("boom")

        rel = build_relationship_graph([ts("a.ts", "./b"), ts("b.ts")], Broken())
        assert rel.is_empty()
