"""Configuration paths and tunables for the memory-bank pipeline."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("MEMORYBANK_HOME", str(Path.home() / ".memorybank"))).expanduser()
SESSIONS_DIR = BASE_DIR / "sessions"
MEMORY_BANK_DIRNAME = Path(".github") / "memory-bank"

DEFAULT_CACHE_TTL = 3600
DEFAULT_CACHE_CAPACITY = 100
DEFAULT_SWEEP_INTERVAL = 300
DEFAULT_MIN_RESPONSE_LENGTH = 50

from .config_manager import load_full_config, load_llm_config  # noqa: E402

_llm_config = load_llm_config()

# LLM provider used by `mb generate` (set via `mb config set llm ...`)
LLM_PROVIDER = _llm_config.get("provider", "ollama")
LLM_API_KEY = _llm_config.get("api_key", "")
LLM_MODEL = _llm_config.get("model", "qwen2.5-coder:7b")
LLM_ENDPOINT = _llm_config.get("endpoint", "http://127.0.0.1:11434/api/generate")


@dataclass
class CacheSettings:
    ttl_seconds: int = DEFAULT_CACHE_TTL
    capacity: int = DEFAULT_CACHE_CAPACITY
    sweep_interval_seconds: int = DEFAULT_SWEEP_INTERVAL


@dataclass
class QualityThresholds:
    """Minimum scores (0-100) a ResponseSet must reach to be committed."""

    overall: float = 60.0
    specificity: float = 65.0
    professional_tone: float = 65.0
    business_context: float = 55.0
    technical_accuracy: float = 55.0
    narrative_coherence: float = 60.0
    min_response_length: int = DEFAULT_MIN_RESPONSE_LENGTH


@dataclass
class AnalysisSettings:
    depth: str = "standard"


@dataclass
class Settings:
    cache: CacheSettings = field(default_factory=CacheSettings)
    quality: QualityThresholds = field(default_factory=QualityThresholds)
    analysis: AnalysisSettings = field(default_factory=AnalysisSettings)


def _merge_section(target: Any, values: Dict[str, Any]) -> None:
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            logger.warning("Ignoring unknown config key '%s'", key)
            continue
        current = getattr(target, key)
        try:
            setattr(target, key, type(current)(value))
        except (TypeError, ValueError):
            logger.warning("Invalid value for config key '%s': %r", key, value)


def load_settings() -> Settings:
    """Build :class:`Settings` from defaults overlaid with ``config.toml``."""
    settings = Settings()
    raw = load_full_config()
    for section in ("cache", "quality", "analysis"):
        values = raw.get(section)
        if isinstance(values, dict):
            _merge_section(getattr(settings, section), values)
    return settings

