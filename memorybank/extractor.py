"""Code structure extractor: one StructuralRecord per scanned file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List

from .models import (
    FailedStructure,
    FileRecord,
    IntelligenceStats,
    ParsedStructure,
    ParseErrorInfo,
    StructuralRecord,
)
from .parser import get_analyzer

logger = logging.getLogger(__name__)


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8", errors="ignore")


async def extract_structure(record: FileRecord) -> StructuralRecord:
    """Analyze a single file; failures come back as a ``FailedStructure``."""
    try:
        content = await asyncio.to_thread(_read_text, record.path)
        analyzer = get_analyzer(record.language)
        return analyzer.parse(content, record.relative_path)
    except Exception as exc:
        logger.warning("Failed to parse %s: %s", record.relative_path, exc)
        return FailedStructure(
            file_path=record.relative_path,
            language=record.language,
            errors=[ParseErrorInfo(message=str(exc) or type(exc).__name__)],
        )


async def extract_structures(files: List[FileRecord]) -> List[StructuralRecord]:
    """Run the matching analyzer over every file, sequentially.

    The result always has exactly one record per input file, in input order.
    """
    records: List[StructuralRecord] = []
    for record in files:
        records.append(await extract_structure(record))
    return records


def complexity_bucket(total_files: int, total_functions: int) -> str:
    if total_files < 10 and total_functions < 50:
        return "Simple"
    if total_files < 50 and total_functions < 200:
        return "Moderate"
    if total_files < 200 and total_functions < 1000:
        return "Complex"
    return "Enterprise"


def summarize(records: List[StructuralRecord]) -> IntelligenceStats:
    """Aggregate parse completeness and size figures for a record set."""
    languages: Dict[str, int] = {}
    for rec in records:
        languages[rec.language] = languages.get(rec.language, 0) + 1

    parsed = [r for r in records if isinstance(r, ParsedStructure)]
    succeeded = sum(1 for r in records if r.success)
    total = len(records)
    total_functions = sum(len(r.functions) for r in parsed)
    return IntelligenceStats(
        total_files=total,
        parsed_files=succeeded,
        failed_files=total - succeeded,
        completeness=round(succeeded / total * 100, 1) if total else 0.0,
        complexity_bucket=complexity_bucket(total, total_functions),
        languages=languages,
        total_functions=total_functions,
        total_classes=sum(len(r.classes) for r in parsed),
        total_interfaces=sum(len(r.interfaces) for r in parsed),
    )
