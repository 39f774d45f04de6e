"""File inventory scanner: walks a project tree and classifies source files."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .errors import ScanIOError
from .models import AnalysisDepth, FileInventory, FileRecord

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".java": "java",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
}

# Recognized as source but without a language bucket of their own.
SOURCE_EXTENSIONS: Set[str] = set(LANGUAGE_MAP) | {".cpp", ".c", ".h"}

SKIP_DIRS: Set[str] = {
    "node_modules", ".git", "dist", "build", "coverage", ".next", ".nuxt",
    "__pycache__", "venv", ".venv", "site-packages", ".tox", ".pytest_cache",
    ".mypy_cache", "htmlcov", ".eggs",
}


def detect_language(path: Path) -> str:
    return LANGUAGE_MAP.get(path.suffix.lower(), "unknown")


def is_source_file(path: Path) -> bool:
    return path.suffix.lower() in SOURCE_EXTENSIONS


def should_skip_dir(name: str) -> bool:
    return name in SKIP_DIRS or name.startswith(".") or name.endswith(".egg-info")


def _list_directory(directory: Path) -> List[Tuple[str, bool]]:
    try:
        with os.scandir(directory) as it:
            return [(entry.name, entry.is_dir(follow_symlinks=False)) for entry in it]
    except OSError as exc:
        raise ScanIOError(str(directory), exc.strerror or str(exc)) from exc


def _make_record(root: Path, path: Path) -> FileRecord:
    stat = path.stat()
    data = path.read_bytes()
    return FileRecord(
        path=str(path),
        relative_path=path.relative_to(root).as_posix(),
        language=detect_language(path),
        size=stat.st_size,
        modified=stat.st_mtime,
        byte_length=len(data),
        line_count=data.count(b"\n") + 1 if data else 0,
    )


async def scan_project(
    root: Path,
    depth: AnalysisDepth = AnalysisDepth.STANDARD,
    max_depth: Optional[int] = None,
) -> FileInventory:
    """Walk *root* depth-first and return a :class:`FileInventory`.

    Directories deeper than the depth budget are not entered. Unreadable
    directories are logged and treated as empty.
    """
    root = Path(root)
    limit = depth.max_depth if max_depth is None else max_depth
    inventory = FileInventory(root=str(root))
    await _walk(root, root, 0, limit, inventory)
    logger.debug(
        "Scanned %s: %d files, %d directories, %d unreadable",
        root, len(inventory.files), len(inventory.directories), len(inventory.unreadable),
    )
    return inventory


async def _walk(
    root: Path,
    directory: Path,
    level: int,
    limit: int,
    inventory: FileInventory,
) -> None:
    try:
        entries = await asyncio.to_thread(_list_directory, directory)
    except ScanIOError as exc:
        logger.warning("%s", exc.message)
        inventory.unreadable.append(exc.path)
        return

    for name, is_dir in sorted(entries):
        path = directory / name
        if is_dir:
            if should_skip_dir(name) or level + 1 > limit:
                continue
            inventory.directories.append(path.relative_to(root).as_posix())
            await _walk(root, path, level + 1, limit, inventory)
            continue

        if level == 0:
            inventory.root_files.append(name)
        if not is_source_file(path):
            continue
        try:
            record = await asyncio.to_thread(_make_record, root, path)
        except OSError as exc:
            logger.warning("Cannot stat %s: %s", path, exc)
            continue
        inventory.files.append(record)
