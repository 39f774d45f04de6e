"""Memory-bank file formatting and writing."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping

from .errors import GenerationError

logger = logging.getLogger(__name__)

# slot -> (file name, document title)
MEMORY_BANK_FILES: Dict[str, tuple] = {
    "project_brief": ("projectbrief.md", "Project Brief"),
    "product_context": ("productContext.md", "Product Context"),
    "active_context": ("activeContext.md", "Active Context"),
    "system_patterns": ("systemPatterns.md", "System Patterns"),
    "tech_context": ("techContext.md", "Technical Context"),
    "progress": ("progress.md", "Progress"),
}


def format_section(
    slot: str,
    content: str,
    project_name: str,
    generated_at: str,
    analysis_id: str = "",
    root_path: str = "",
) -> str:
    _, title = MEMORY_BANK_FILES[slot]
    header = [f"# {title}", "", f"*Generated: {generated_at}*", f"*Project: {project_name}*"]
    if slot == "project_brief" and analysis_id:
        header += [f"*Analysis ID: {analysis_id}*", f"*Location: {root_path}*"]
    return "\n".join(header) + "\n\n" + content.strip() + "\n"


def write_memory_bank(content: Mapping[str, str], destination: Path) -> List[str]:
    """Write one markdown file per slot into *destination*.

    Args:
        content: Slot name -> final markdown text.
        destination: Directory to create/write into.

    Returns:
        The file names written, in slot order.
    """
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise GenerationError(f"Cannot create {destination}: {exc}", {"path": str(destination)}) from exc

    written: List[str] = []
    for slot, (filename, _) in MEMORY_BANK_FILES.items():
        if slot not in content:
            continue
        try:
            (destination / filename).write_text(content[slot], encoding="utf-8")
        except OSError as exc:
            raise GenerationError(f"Cannot write {filename}: {exc}", {"path": str(destination)}) from exc
        written.append(filename)
    logger.info("Wrote %d memory bank files to %s", len(written), destination)
    return written
