"""Configuration manager for memorybank using TOML files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import toml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE = Path(
    os.environ.get("MEMORYBANK_HOME", str(Path.home() / ".memorybank"))
).expanduser() / "config.toml"

SECTIONS = ("cache", "quality", "analysis", "llm")

# Used when config.toml has no [llm] section
DEFAULT_LLM_CONFIG = {
    "provider": "ollama",
    "model": "qwen2.5-coder:7b",
    "endpoint": "http://127.0.0.1:11434/api/generate",
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing file yields an empty dict; a malformed one is logged and
    ignored so the built-in defaults apply.
    """
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write %s: %s", CONFIG_FILE, exc)
        return False


def load_llm_config() -> Dict[str, Any]:
    """Return the ``[llm]`` section, falling back to Ollama defaults."""
    return load_full_config().get("llm", DEFAULT_LLM_CONFIG.copy())


def save_config(section: str, values: Dict[str, Any]) -> bool:
    """Merge *values* into *section* and persist the file.

    Other sections are preserved.

    Args:
        section: One of ``cache``, ``quality``, ``analysis`` or ``llm``.
        values: Keys to set inside the section.

    Returns:
        True if saved successfully, False otherwise.
    """
    if section not in SECTIONS:
        raise ConfigurationError(
            f"Unknown config section '{section}'", {"allowed": list(SECTIONS)}
        )
    config = load_full_config()
    config.setdefault(section, {}).update(values)
    return _save_full_config(config)

