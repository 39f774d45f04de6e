"""On-disk Phase 1 sessions so the CLI can run Phase 2 in a later invocation.

Only files this tool wrote under ``BASE_DIR/sessions`` are ever unpickled.
"""

from __future__ import annotations

import logging
import pickle
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import config
from .cache import AnalysisCache

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_\-]+$")


class SessionStore:
    """Persist and reload cache entries keyed by analysis id."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory) if directory is not None else config.SESSIONS_DIR
        self._clock = clock
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, analysis_id: str) -> Path:
        if not _SAFE_ID.match(analysis_id):
            raise ValueError(f"Invalid analysis id: {analysis_id!r}")
        return self.directory / f"{analysis_id}.pkl"

    def list_sessions(self) -> List[str]:
        return sorted(p.stem for p in self.directory.glob("*.pkl"))

    def save(self, cache: AnalysisCache, analysis_id: str) -> Path:
        """Write the live cache entry for *analysis_id* to disk."""
        self.prune_expired()
        entry = cache.get_entry(analysis_id)
        if entry is None:
            raise KeyError(analysis_id)
        path = self.path_for(analysis_id)
        payload = {
            "snapshot": entry.snapshot,
            "timestamp": entry.timestamp,
            "expires": entry.expires,
        }
        with open(path, "wb") as f:
            pickle.dump(payload, f)
        logger.debug("Saved session %s to %s", analysis_id, path)
        return path

    def load_into(self, cache: AnalysisCache, analysis_id: str) -> bool:
        """Restore a saved session into *cache*; False if none exists."""
        path = self.path_for(analysis_id)
        self.prune_expired(keep=analysis_id)
        if not path.exists():
            return False
        payload = self._read(path)
        if payload is None:
            return False
        cache.restore(analysis_id, payload["snapshot"], payload["timestamp"], payload["expires"])
        return True

    def delete(self, analysis_id: str) -> None:
        self.path_for(analysis_id).unlink(missing_ok=True)

    def prune_expired(self, keep: Optional[str] = None) -> int:
        """Remove expired or unreadable sessions other than *keep*; return the count."""
        now = self._clock()
        removed = 0
        for analysis_id in self.list_sessions():
            if analysis_id == keep:
                continue
            path = self.directory / f"{analysis_id}.pkl"
            payload = self._read(path)
            if payload is None:
                removed += 1
            elif payload["expires"] < now:
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info("Pruned %d stale session(s) from %s", removed, self.directory)
        return removed

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            with open(path, "rb") as f:
                payload = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError, AttributeError, ImportError) as exc:
            logger.warning("Discarding unreadable session %s: %s", path, exc)
            path.unlink(missing_ok=True)
            return None
        if not isinstance(payload, dict) or "expires" not in payload:
            logger.warning("Discarding malformed session %s", path)
            path.unlink(missing_ok=True)
            return None
        return payload
