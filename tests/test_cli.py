"""Tests for CLI commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from memorybank.cli import app
from memorybank.config import MEMORY_BANK_DIRNAME

runner = CliRunner()


def _analyze(project: Path, prompts_dir: Path) -> str:
    result = runner.invoke(app, ["analyze", str(project), "--save-prompts", str(prompts_dir)])
    assert result.exit_code == 0, result.output
    return json.loads((prompts_dir / "analysis.json").read_text())["analysis_id"]


@pytest.fixture
def responses_file(temp_dir: Path, good_responses) -> Path:
    path = temp_dir / "responses.json"
    path.write_text(json.dumps(good_responses))
    return path


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_version(self):
        """Test --version flag."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "Memory Bank CLI v1.0.0" in result.output

    def test_help(self):
        """Test --help flag."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "analyze" in result.output
        assert "process" in result.output

    def test_missing_project(self, temp_dir: Path):
        """Test a non-existent path is rejected by argument validation."""
        result = runner.invoke(app, ["scan", str(temp_dir / "missing")])
        assert result.exit_code != 0


class TestInspection:
    """scan, graph and export-graph."""

    def test_scan(self, sample_project_path: Path):
        """Test scan prints the inventory summary."""
        result = runner.invoke(app, ["scan", str(sample_project_path)])
        assert result.exit_code == 0, result.output
        assert "python" in result.output
        assert "Files: 4" in result.output
        assert "Complexity: Simple" in result.output

    def test_scan_reports_parse_failures(self, temp_dir: Path):
        """Test files that fail to parse are listed."""
        (temp_dir / "bad.py").write_text("def broken(:\n")
        result = runner.invoke(app, ["scan", str(temp_dir)])
        assert result.exit_code == 0
        assert "could not parse bad.py" in result.output

    def test_graph(self, sample_project_path: Path):
        """Test graph shows nodes and the cluster."""
        result = runner.invoke(app, ["graph", str(sample_project_path)])
        assert result.exit_code == 0, result.output
        assert "main.py" in result.output
        assert "Cluster" in result.output

    def test_graph_without_dependencies(self, temp_dir: Path):
        """Test a project without files reports no dependencies."""
        result = runner.invoke(app, ["graph", str(temp_dir)])
        assert result.exit_code == 0
        assert "No internal dependencies found." in result.output

    def test_export_graph(self, sample_project_path: Path, temp_dir: Path):
        """Test DOT export writes the edges."""
        out = temp_dir / "graph.dot"
        result = runner.invoke(app, ["export-graph", str(sample_project_path), str(out)])
        assert result.exit_code == 0, result.output
        dot = out.read_text()
        assert dot.startswith("digraph MemoryBank {")
        assert '"main.py" -> "models.py"' in dot


class TestTwoPhaseWorkflow:
    """analyze then process across separate invocations."""

    def test_analyze_saves_prompts_and_session(self, project_copy: Path, temp_dir: Path, _isolated_home: Path):
        """Test analyze writes prompt files and a resumable session."""
        prompts_dir = temp_dir / "prompts"
        analysis_id = _analyze(project_copy, prompts_dir)

        meta = json.loads((prompts_dir / "analysis.json").read_text())
        assert meta["phase"] == "prompts-ready"
        assert meta["slots"] == [
            "brief", "product-context", "active-context",
            "system-patterns", "tech-context", "progress",
        ]
        assert (prompts_dir / "brief.md").read_text().startswith("Please provide")
        assert (_isolated_home / "sessions" / f"{analysis_id}.pkl").exists()

    def test_analyze_prints_prompts(self, project_copy: Path):
        """Test analyze prints every prompt when not saving them."""
        result = runner.invoke(app, ["analyze", str(project_copy)])
        assert result.exit_code == 0, result.output
        assert "Analysis ID" in result.output
        assert "tech-context" in result.output

    def test_process_complete(self, project_copy: Path, temp_dir: Path, responses_file: Path, _isolated_home: Path):
        """Test good responses write the memory bank and consume the session."""
        analysis_id = _analyze(project_copy, temp_dir / "prompts")

        result = runner.invoke(app, ["process", analysis_id, str(responses_file)])

        assert result.exit_code == 0, result.output
        assert "Memory bank written" in result.output
        assert (project_copy / MEMORY_BANK_DIRNAME / "projectbrief.md").exists()
        assert not (_isolated_home / "sessions" / f"{analysis_id}.pkl").exists()

    def test_process_needs_enhancement(self, project_copy: Path, temp_dir: Path, poor_responses, _isolated_home: Path):
        """Test poor responses print enhancement requests and keep the session."""
        analysis_id = _analyze(project_copy, temp_dir / "prompts")
        poor = temp_dir / "poor.json"
        poor.write_text(json.dumps(poor_responses))

        result = runner.invoke(app, ["process", analysis_id, str(poor)])

        assert result.exit_code == 0, result.output
        assert "Quality gate not met" in result.output
        assert not (project_copy / MEMORY_BANK_DIRNAME).exists()
        assert (_isolated_home / "sessions" / f"{analysis_id}.pkl").exists()

    def test_process_missing_slot(self, project_copy: Path, temp_dir: Path, good_responses):
        """Test an empty slot fails with a non-zero exit."""
        analysis_id = _analyze(project_copy, temp_dir / "prompts")
        good_responses["progress"] = ""
        partial = temp_dir / "partial.json"
        partial.write_text(json.dumps(good_responses))

        result = runner.invoke(app, ["process", analysis_id, str(partial)])

        assert result.exit_code == 1
        assert "progress" in result.output

    def test_process_unknown_analysis(self, responses_file: Path):
        """Test an unknown analysis id asks for a restart."""
        result = runner.invoke(app, ["process", "analysis_unknown", str(responses_file)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_process_rejects_bad_id(self, responses_file: Path):
        """Test ids that are not plain tokens are refused."""
        result = runner.invoke(app, ["process", "../escape", str(responses_file)])
        assert result.exit_code == 1

    def test_process_rejects_non_object_json(self, temp_dir: Path):
        """Test the responses file must hold a JSON object."""
        bad = temp_dir / "list.json"
        bad.write_text("[1, 2]")
        result = runner.invoke(app, ["process", "analysis_x", str(bad)])
        assert result.exit_code == 2

    def test_generate(self, project_copy: Path):
        """Test generate runs both phases with the configured LLM."""
        result = runner.invoke(app, ["generate", str(project_copy), "--provider", "ollama"])
        assert result.exit_code == 0, result.output
        assert "Memory bank written" in result.output
        assert (project_copy / MEMORY_BANK_DIRNAME / "progress.md").exists()


class TestConfigCommands:
    """config show and config set."""

    def test_set_and_show(self, _isolated_home: Path):
        """Test a value set through the CLI shows up in config show."""
        result = runner.invoke(app, ["config", "set", "cache", "ttl_seconds", "120"])
        assert result.exit_code == 0, result.output
        assert "cache.ttl_seconds = 120" in result.output
        assert "ttl_seconds = 120" in (_isolated_home / "config.toml").read_text()

        shown = runner.invoke(app, ["config", "show"])
        assert shown.exit_code == 0
        assert "120" in shown.output

    def test_set_llm_value(self, _isolated_home: Path):
        """Test llm values are stored as given."""
        result = runner.invoke(app, ["config", "set", "llm", "provider", "groq"])
        assert result.exit_code == 0
        assert 'provider = "groq"' in (_isolated_home / "config.toml").read_text()

    def test_unknown_section(self):
        """Test an unknown section fails."""
        result = runner.invoke(app, ["config", "set", "bogus", "key", "1"])
        assert result.exit_code == 1

    def test_unknown_key(self):
        """Test an unknown key fails."""
        result = runner.invoke(app, ["config", "set", "cache", "nope", "1"])
        assert result.exit_code == 1

    def test_invalid_value(self):
        """Test values that do not convert fail."""
        assert runner.invoke(app, ["config", "set", "cache", "capacity", "many"]).exit_code == 1
        assert runner.invoke(app, ["config", "set", "analysis", "depth", "extreme"]).exit_code == 1
