"""Path and content sanitization applied before walking or persisting anything."""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePath
from typing import List, Union

from .errors import PathSecurityError

logger = logging.getLogger(__name__)

DANGEROUS_PATTERNS: List[re.Pattern] = [
    re.compile(r"rm\s+-rf?\s+/", re.IGNORECASE),
    re.compile(r"curl\s+[^|]*\|\s*(?:ba)?sh", re.IGNORECASE),
    re.compile(r"wget\s+[^|]*\|\s*(?:ba)?sh", re.IGNORECASE),
    re.compile(r"\bsudo\s+", re.IGNORECASE),
    re.compile(r"\beval\s*\(", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
]

_SCRIPT_BLOCK = re.compile(r"<script[\s\S]*?>[\s\S]*?</script>", re.IGNORECASE)
_IFRAME_BLOCK = re.compile(r"<iframe[\s\S]*?>[\s\S]*?</iframe>", re.IGNORECASE)
_SHELL_FENCE = re.compile(r"```(bash|sh|shell|zsh)?\n([\s\S]*?)```", re.IGNORECASE)


def sanitize_project_path(path: Union[str, Path]) -> Path:
    """Resolve *path* to an absolute path, rejecting ``..`` traversal segments."""
    raw = str(path)
    if not raw.strip():
        raise PathSecurityError("Empty project path")
    if ".." in PurePath(raw).parts:
        logger.warning("Rejected path with traversal segment: %s", raw)
        raise PathSecurityError(f"Path traversal is not allowed: {raw}", {"path": raw})
    return Path(raw).expanduser().resolve()


def is_within(base: Path, target: Path) -> bool:
    try:
        target.resolve().relative_to(base.resolve())
        return True
    except ValueError:
        return False


def filter_dangerous_commands(content: str) -> str:
    """Drop dangerous lines from fenced shell code blocks."""

    def _filter(match: re.Match) -> str:
        lang = match.group(1) or ""
        kept = []
        for line in match.group(2).split("\n"):
            if any(p.search(line) for p in DANGEROUS_PATTERNS):
                logger.warning("Dangerous command filtered: %s", line.strip())
                continue
            kept.append(line)
        body = "\n".join(kept).strip("\n")
        return f"```{lang}\n{body}\n```" if body else f"```{lang}\n```"

    return _SHELL_FENCE.sub(_filter, content)


def sanitize_markdown(content: str) -> str:
    """Remove script/iframe blocks and dangerous shell commands from markdown."""
    sanitized = _SCRIPT_BLOCK.sub("<!-- Script tag removed for security -->", content)
    sanitized = _IFRAME_BLOCK.sub("<!-- iframe removed for security -->", sanitized)
    return filter_dangerous_commands(sanitized)
