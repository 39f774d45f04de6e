"""Multi-provider LLM adapter used by ``mb generate`` to answer Phase 1 prompts."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Optional

import requests

from .config import LLM_API_KEY, LLM_ENDPOINT, LLM_MODEL, LLM_PROVIDER
from .models import PromptSet, ResponseSet

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior software architect writing internal project documentation. "
    "Answer in markdown with headings, and reference concrete files and symbols."
)
MAX_TOKENS = 2048


class LLMProvider:
    """Base class for LLM providers."""

    def generate(self, prompt: str) -> Optional[str]:
        """Generate a response from the LLM, or None on failure."""
        raise NotImplementedError


def _post_json(url: str, payload: dict, headers: dict, timeout: int) -> Optional[dict]:
    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except (urllib.error.URLError, TimeoutError, json.JSONDecodeError) as exc:
        logger.warning("LLM request to %s failed: %s", url, exc)
        return None


class OllamaProvider(LLMProvider):
    """Ollama local LLM provider."""

    def __init__(self, model: str, endpoint: str):
        self.model = model
        self.endpoint = endpoint

    def generate(self, prompt: str) -> Optional[str]:
        parsed = _post_json(
            self.endpoint,
            {
                "model": self.model,
                "system": SYSTEM_PROMPT,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": 0.2},
            },
            {},
            timeout=120,
        )
        return parsed.get("response") if parsed else None


class OpenAIProvider(LLMProvider):
    """OpenAI API provider (also works with other OpenAI-compatible APIs)."""

    def __init__(self, model: str, api_key: str, endpoint: str = "https://api.openai.com/v1/chat/completions"):
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint

    def generate(self, prompt: str) -> Optional[str]:
        if not self.api_key:
            return None
        parsed = _post_json(
            self.endpoint,
            {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "temperature": 0.2,
                "max_tokens": MAX_TOKENS,
            },
            {"Authorization": f"Bearer {self.api_key}"},
            timeout=60,
        )
        try:
            return parsed["choices"][0]["message"]["content"] if parsed else None
        except (KeyError, IndexError):
            return None


class AnthropicProvider(LLMProvider):
    """Anthropic Claude API provider."""

    def __init__(self, model: str, api_key: str):
        self.model = model
        self.api_key = api_key
        self.endpoint = "https://api.anthropic.com/v1/messages"

    def generate(self, prompt: str) -> Optional[str]:
        if not self.api_key:
            return None
        parsed = _post_json(
            self.endpoint,
            {
                "model": self.model,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": MAX_TOKENS,
                "temperature": 0.2,
            },
            {"x-api-key": self.api_key, "anthropic-version": "2023-06-01"},
            timeout=60,
        )
        try:
            return parsed["content"][0]["text"] if parsed else None
        except (KeyError, IndexError):
            return None


class GroqProvider(LLMProvider):
    """Groq cloud API provider."""

    def __init__(self, model: str, api_key: str):
        self.model = model
        self.api_key = api_key
        self.endpoint = "https://api.groq.com/openai/v1/chat/completions"

    def generate(self, prompt: str) -> Optional[str]:
        if not self.api_key:
            return None
        try:
            response = requests.post(
                self.endpoint,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    "temperature": 0.2,
                    "max_tokens": MAX_TOKENS,
                },
                timeout=60,
            )
            response.raise_for_status()
            return response.json()["choices"][0]["message"]["content"]
        except (requests.RequestException, KeyError, IndexError, ValueError) as exc:
            logger.warning("Groq request failed: %s", exc)
            return None


class LocalLLM:
    """Provider-agnostic LLM manager."""

    def __init__(
        self,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        """Initialize LLM with provider selection.

        Args:
            model: Model name (defaults to config or "qwen2.5-coder:7b")
            provider: "ollama", "groq", "openai" or "anthropic" (defaults to config)
            api_key: API key for cloud providers (defaults to config)
            endpoint: Custom endpoint (defaults to config)
        """
        self.provider_name = (provider or LLM_PROVIDER).lower()
        self.model = model or LLM_MODEL
        self.api_key = api_key or LLM_API_KEY
        self.endpoint = endpoint or LLM_ENDPOINT
        self.provider = self._create_provider()

    def _create_provider(self) -> LLMProvider:
        default_model = self.model == "qwen2.5-coder:7b"
        if self.provider_name == "groq":
            return GroqProvider("llama-3.3-70b-versatile" if default_model else self.model, self.api_key)
        if self.provider_name == "openai":
            endpoint = self.endpoint if "11434" not in self.endpoint else "https://api.openai.com/v1/chat/completions"
            return OpenAIProvider("gpt-4o-mini" if default_model else self.model, self.api_key, endpoint)
        if self.provider_name == "anthropic":
            return AnthropicProvider("claude-3-5-sonnet-20241022" if default_model else self.model, self.api_key)
        return OllamaProvider(self.model, self.endpoint)

    def generate(self, prompt: str) -> Optional[str]:
        return self.provider.generate(prompt)

    def generate_responses(self, prompts: PromptSet) -> ResponseSet:
        """Answer every prompt slot; a failed call leaves its slot empty."""
        answers = {}
        for slot, prompt in prompts.items():
            logger.debug("Requesting %s from %s", slot, self.provider_name)
            answers[slot] = self.generate(prompt) or ""
        return ResponseSet(**answers)
