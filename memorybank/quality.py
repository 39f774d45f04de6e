"""Phase 2 response validation, quality metrics and the quality gate."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import List, Optional, Set

from .config import QualityThresholds
from .errors import ValidationError
from .models import (
    AnalysisSnapshot,
    EnhancementRequest,
    ParsedStructure,
    QualityMetrics,
    ResponseSet,
    SLOT_WIRE_NAMES,
)

_SPECIFIC_PATTERNS = [
    re.compile(r"\w+\.(?:ts|tsx|js|jsx|py|java|cs|go|rs|cpp|h)\b"),
    re.compile(r"`[^`]+`"),
    re.compile(r"(?:function|def)\s+\w+"),
    re.compile(r"class\s+\w+"),
    re.compile(r"/\w+/\w+"),
    re.compile(r"\bsrc\b|\blib\b|\btests?\b"),
    re.compile(r"typescript|javascript|python|framework|library"),
]

PROFESSIONAL_TERMS = (
    "architecture", "implementation", "framework", "component", "interface",
    "module", "service", "integration", "optimization", "scalability",
    "maintainability", "enterprise", "business",
)

BUSINESS_TERMS = (
    "business", "value", "stakeholder", "user", "customer", "efficiency",
    "process", "workflow", "solution", "benefit", "impact", "objective",
    "goal", "requirement", "purpose",
)

GENERIC_PHRASES = ("software project", "this application", "the system", "various components")

_HEADING = re.compile(r"^#{1,6}\s+\S", re.MULTILINE)

REMEDIATION = {
    "specificity": (
        "Content lacks specificity. Please enhance with specific file names, "
        "function names, and concrete examples from the codebase."
    ),
    "professional_tone": (
        "Content needs professional tone enhancement. Use precise, "
        "architecture-level language suitable for engineers and stakeholders."
    ),
    "business_context": (
        "Content lacks business context. Explain the users, workflows and "
        "value each component supports."
    ),
    "technical_accuracy": (
        "Content does not reference enough of the analyzed code. Name the "
        "actual modules, classes and functions found in the analysis."
    ),
    "narrative_coherence": (
        "Content is poorly structured. Organize every section under markdown "
        "headings with at least two paragraphs."
    ),
    "overall": (
        "Overall quality is below the acceptance threshold. Address the "
        "weakest dimensions above and resubmit all six sections."
    ),
}


def validate_responses(responses: ResponseSet, min_length: int) -> None:
    """Raise :class:`ValidationError` naming every missing or short slot."""
    missing = [
        SLOT_WIRE_NAMES[name]
        for name, text in responses.items()
        if len((text or "").strip()) < min_length
    ]
    if missing:
        raise ValidationError(missing, min_length)


def generic_sections(responses: ResponseSet) -> List[str]:
    """Slots that lean on more than two boilerplate phrases."""
    flagged = []
    for name, text in responses.items():
        lowered = text.lower()
        if sum(lowered.count(p) for p in GENERIC_PHRASES) > 2:
            flagged.append(SLOT_WIRE_NAMES[name])
    return flagged


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def _count_terms(text: str, terms: tuple) -> int:
    return sum(text.count(term) for term in terms)


def score_specificity(text: str) -> float:
    hits = sum(len(p.findall(text)) for p in _SPECIFIC_PATTERNS)
    return 60 + min(40, hits * 2)


def score_professional_tone(text: str) -> float:
    words = len(text.split()) or 1
    return round(_clamp(_count_terms(text, PROFESSIONAL_TERMS) / words * 1000 + 60))


def score_business_context(text: str) -> float:
    return 50 + min(40, _count_terms(text, BUSINESS_TERMS) * 3)


def snapshot_identifiers(snapshot: AnalysisSnapshot) -> Set[str]:
    """Lower-cased file stems, class, interface and function names of a snapshot."""
    names: Set[str] = set()
    for record in snapshot.structures:
        stem = PurePosixPath(record.file_path).stem
        if stem not in ("__init__", "index"):
            names.add(stem.lower())
        if isinstance(record, ParsedStructure):
            names.update(f.name.lower() for f in record.functions)
            names.update(c.name.lower() for c in record.classes)
            names.update(i.name.lower() for i in record.interfaces)
    return {n for n in names if len(n) > 2 and not n.startswith("_")}


def score_technical_accuracy(text: str, snapshot: AnalysisSnapshot) -> float:
    """Proxy: how many distinct analyzed identifiers the responses mention."""
    mentioned = sum(
        1 for name in snapshot_identifiers(snapshot)
        if re.search(rf"\b{re.escape(name)}\b", text)
    )
    return 50 + min(50, mentioned * 5)


def score_narrative_coherence(responses: ResponseSet) -> float:
    """Proxy: share of sections with a heading and at least two paragraphs."""
    coherent = 0
    sections = responses.items()
    for _, text in sections:
        paragraphs = [p for p in re.split(r"\n\s*\n", text.strip()) if p.strip()]
        if _HEADING.search(text) and len(paragraphs) >= 2:
            coherent += 1
    return round(40 + 60 * coherent / len(sections))


def compute_metrics(responses: ResponseSet, snapshot: AnalysisSnapshot) -> QualityMetrics:
    text = "\n".join(value for _, value in responses.items()).lower()
    scores = {
        "specificity": score_specificity(text),
        "professional_tone": score_professional_tone(text),
        "business_context": score_business_context(text),
        "technical_accuracy": score_technical_accuracy(text, snapshot),
        "narrative_coherence": score_narrative_coherence(responses),
    }
    overall = round(sum(scores.values()) / len(scores))
    return QualityMetrics(overall=overall, **scores)


def evaluate_gate(
    metrics: QualityMetrics,
    thresholds: QualityThresholds,
    generic: Optional[List[str]] = None,
) -> List[EnhancementRequest]:
    """Return one request per failing dimension; empty means the gate passed."""
    requests: List[EnhancementRequest] = []
    for dimension in (
        "specificity", "professional_tone", "business_context",
        "technical_accuracy", "narrative_coherence", "overall",
    ):
        score = getattr(metrics, dimension)
        threshold = getattr(thresholds, dimension)
        if score < threshold:
            requests.append(EnhancementRequest(dimension, score, threshold, REMEDIATION[dimension]))
    if generic and requests:
        requests.append(EnhancementRequest(
            "generic_content", 0, 0,
            "Replace boilerplate phrasing in: " + ", ".join(generic),
        ))
    return requests
