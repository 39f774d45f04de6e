"""Two-phase orchestrator: analyze a project into prompts, then gate and commit responses."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Union

from .cache import AnalysisCache
from .config import MEMORY_BANK_DIRNAME, Settings, load_settings
from .errors import InvalidProjectError
from .extractor import extract_structures, summarize
from .graph import build_relationship_graph
from .models import (
    AnalysisDepth,
    AnalysisSnapshot,
    Phase1Result,
    Phase2Result,
    ResponseSet,
)
from .project_analysis import analyze_project_profile
from .prompts import PHASE1_INSTRUCTIONS, build_prompt_set, estimate_tokens
from .quality import compute_metrics, evaluate_gate, generic_sections, validate_responses
from .scanner import scan_project
from .scoring import ScoringStrategy
from .security import is_within, sanitize_markdown, sanitize_project_path
from .writer import format_section, write_memory_bank

logger = logging.getLogger(__name__)

Writer = Callable[[Mapping[str, str], Path], List[str]]


async def run_pipeline(
    root: Path,
    depth: AnalysisDepth = AnalysisDepth.STANDARD,
    scoring: Optional[ScoringStrategy] = None,
) -> AnalysisSnapshot:
    """Scan, extract, and relate *root* into an :class:`AnalysisSnapshot`."""
    inventory = await scan_project(root, depth)
    structures = await extract_structures(inventory.files)
    graph = build_relationship_graph(structures, scoring)
    profile = await analyze_project_profile(root, inventory)
    return AnalysisSnapshot(
        root_path=str(root),
        depth=depth,
        profile=profile,
        files=inventory.files,
        structures=structures,
        graph=graph,
        stats=summarize(structures),
        timestamp=time.time(),
    )


class MemoryBankOrchestrator:
    """Drives Phase 1 (analyze) and Phase 2 (process) around an owned cache."""

    def __init__(
        self,
        cache: Optional[AnalysisCache] = None,
        settings: Optional[Settings] = None,
        writer: Writer = write_memory_bank,
        path_sanitizer: Callable[[Union[str, Path]], Path] = sanitize_project_path,
        markdown_sanitizer: Callable[[str], str] = sanitize_markdown,
        scoring: Optional[ScoringStrategy] = None,
    ):
        self.settings = settings or load_settings()
        if cache is None:
            cache = AnalysisCache(
                ttl=self.settings.cache.ttl_seconds,
                capacity=self.settings.cache.capacity,
            )
        self.cache = cache
        self.writer = writer
        self.path_sanitizer = path_sanitizer
        self.markdown_sanitizer = markdown_sanitizer
        self.scoring = scoring

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the cache's periodic expiry sweep on the running loop."""
        self.cache.start_sweeper(self.settings.cache.sweep_interval_seconds)

    async def close(self) -> None:
        await self.cache.stop_sweeper()

    async def __aenter__(self) -> "MemoryBankOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    async def analyze(
        self,
        project_path: Union[str, Path],
        depth: Optional[AnalysisDepth] = None,
    ) -> Phase1Result:
        root = self.path_sanitizer(project_path)
        if not root.is_dir():
            raise InvalidProjectError(str(root))

        depth = depth or AnalysisDepth(self.settings.analysis.depth)
        logger.info("Phase 1: analyzing %s (depth=%s)", root, depth.value)
        snapshot = await run_pipeline(root, depth, self.scoring)
        analysis_id = await self.cache.store(snapshot)
        prompts = build_prompt_set(snapshot)

        return Phase1Result(
            analysis_id=analysis_id,
            prompts=prompts,
            instructions=PHASE1_INSTRUCTIONS.format(
                min_length=self.settings.quality.min_response_length,
                ttl_minutes=int(self.cache.ttl // 60),
            ),
            files_analyzed=snapshot.stats.total_files,
            key_patterns=snapshot.profile.key_patterns,
            estimated_tokens=estimate_tokens(prompts),
        )

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    async def process(
        self,
        analysis_id: str,
        responses: Union[ResponseSet, Mapping[str, str]],
        output_dir: Optional[Path] = None,
    ) -> Phase2Result:
        """Validate, score and gate *responses*; commit them when they pass.

        Raises:
            CacheError: the analysis is unknown or expired (restart Phase 1).
            ValidationError: a slot is missing or shorter than the minimum.
        """
        snapshot = await self.cache.retrieve(analysis_id)
        if not isinstance(responses, ResponseSet):
            responses = ResponseSet.from_mapping(responses)

        thresholds = self.settings.quality
        validate_responses(responses, thresholds.min_response_length)

        metrics = compute_metrics(responses, snapshot)
        requests = evaluate_gate(metrics, thresholds, generic_sections(responses))
        if requests:
            logger.info("Phase 2: quality gate failed for %s (overall %s)", analysis_id, metrics.overall)
            return Phase2Result(
                analysis_id=analysis_id,
                phase="needs-enhancement",
                quality=metrics,
                enhancement_requests=requests,
            )

        destination = self._destination(Path(snapshot.root_path), output_dir)
        generated_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        content = {
            slot: self.markdown_sanitizer(format_section(
                slot, text, snapshot.profile.name, generated_at,
                analysis_id=analysis_id, root_path=snapshot.root_path,
            ))
            for slot, text in responses.items()
        }
        files = self.writer(content, destination)
        await self.cache.clear(analysis_id)
        logger.info("Phase 2: wrote %d files to %s (quality %s)", len(files), destination, metrics.overall)

        return Phase2Result(
            analysis_id=analysis_id,
            phase="complete",
            quality=metrics,
            files=files,
            output_dir=str(destination),
        )

    def _destination(self, root: Path, output_dir: Optional[Path]) -> Path:
        default = root / MEMORY_BANK_DIRNAME
        if output_dir is None:
            return default
        requested = Path(output_dir)
        if not requested.is_absolute():
            requested = root / requested
        if not is_within(root, requested):
            logger.warning("Output directory %s is outside %s; using %s", requested, root, default)
            return default
        return requested
