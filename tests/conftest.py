"""Pytest configuration and fixtures for Memory Bank CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator
from unittest.mock import MagicMock

import pytest

from memorybank.models import (
    AnalysisDepth,
    AnalysisSnapshot,
    IntelligenceStats,
    ProjectProfile,
    RelationshipGraph,
    ResponseSet,
)

GOOD_RESPONSES: Dict[str, str] = {
    "brief": (
        "## Overview\n\n"
        "The sample project is an order management module. The `main.py` entry point wires "
        "`UserProcessor` and `OrderProcessor` together to create users and place orders.\n\n"
        "Its purpose is to give the business a small, testable workflow for customer orders, "
        "with `validate_email` guarding user creation."
    ),
    "product-context": (
        "## Business Purpose\n\n"
        "The module supports the order workflow: a customer is registered, places an order, "
        "and the total is computed with tax through `calculate_total` in `utils.py`.\n\n"
        "## Value\n\n"
        "Stakeholders get a predictable process with clear business value and a single "
        "implementation of pricing rules."
    ),
    "active-context": (
        "## Current State\n\n"
        "Active work centers on `processor.py`, where `OrderProcessor.create_order` checks that "
        "the user is active before accepting an order.\n\n"
        "## Next Steps\n\n"
        "The next objective is to persist orders and to extend `Order.total` with discounts."
    ),
    "system-patterns": (
        "## Architecture\n\n"
        "The architecture separates data models in `models.py` (the `User` and `Order` "
        "dataclasses) from the service layer in `processor.py`.\n\n"
        "## Patterns\n\n"
        "Each processor is a small service component with dependency injection: "
        "`OrderProcessor` receives a `UserProcessor` instance, which keeps integration simple."
    ),
    "tech-context": (
        "## Technology\n\n"
        "The implementation is plain Python using dataclasses and typing; there is no external "
        "framework or library dependency.\n\n"
        "## Modules\n\n"
        "`utils.py` holds the pure helper functions `format_name`, `validate_email` and "
        "`calculate_total`, which improves maintainability and testability."
    ),
    "progress": (
        "## Status\n\n"
        "User creation, order creation and order totals are implemented in `processor.py` and "
        "exercised from `main.py`.\n\n"
        "## Roadmap\n\n"
        "Planned work includes storage integration and reporting so the business can measure "
        "order impact and customer goals."
    ),
}

POOR_TEXT = (
    "Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod tempor "
    "incididunt ut labore et dolore magna aliqua."
)


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _mock_local_llm(monkeypatch):
    """Automatically mock LocalLLM in all tests to avoid network connections.

    The real providers talk to Ollama or a cloud API. This fixture swaps in a
    lightweight mock that answers every prompt slot with canned content.
    """

    class _MockLocalLLM:
        def __init__(self, **kwargs):
            self.provider_name = kwargs.get("provider") or "mock"
            self.model = kwargs.get("model") or "mock-model"
            self.provider = MagicMock()
            self.provider.generate.return_value = None

        def generate(self, prompt: str):
            return self.provider.generate(prompt)

        def generate_responses(self, prompts) -> ResponseSet:
            return ResponseSet.from_mapping(GOOD_RESPONSES)

    monkeypatch.setattr("memorybank.llm.LocalLLM", _MockLocalLLM)
    monkeypatch.setattr("memorybank.cli.LocalLLM", _MockLocalLLM)


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch) -> Path:
    """Point config and session storage at a throwaway directory."""
    home = tmp_path / "mb-home"
    monkeypatch.setattr("memorybank.config.SESSIONS_DIR", home / "sessions")
    monkeypatch.setattr("memorybank.config_manager.CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the sample Python project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def ts_project_path() -> Path:
    """Get path to the sample TypeScript project."""
    return Path(__file__).parent / "fixtures" / "ts_project"


@pytest.fixture
def project_copy(temp_dir: Path, sample_project_path: Path) -> Path:
    """A writable copy of the sample project (Phase 2 writes into it)."""
    dest = temp_dir / "sample_project"
    shutil.copytree(sample_project_path, dest)
    return dest


@pytest.fixture
def good_responses() -> Dict[str, str]:
    """Six responses that pass the default quality gate for the sample project."""
    return dict(GOOD_RESPONSES)


@pytest.fixture
def poor_responses() -> Dict[str, str]:
    """Six long-enough responses that fail the default quality gate."""
    return {slot: POOR_TEXT for slot in GOOD_RESPONSES}


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_snapshot():
    """Factory for minimal snapshots used by cache tests."""

    def _make(root: str = "/projects/demo") -> AnalysisSnapshot:
        return AnalysisSnapshot(
            root_path=root,
            depth=AnalysisDepth.STANDARD,
            profile=ProjectProfile(name=Path(root).name),
            files=[],
            structures=[],
            graph=RelationshipGraph(),
            stats=IntelligenceStats(),
            timestamp=0.0,
        )

    return _make
