from __future__ import annotations
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
import requests

logger = logging.getLogger(__name__)


class LLMResponse(BaseModel):
    content: Optional[str] = None
    finish_reason: str
    usage: Optional[Dict[str, int]] = None
    time_taken: float
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.content)


@dataclass
class LLMConfig:
    api_base: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    model: str = "gemini-2.5-flash"
    api_key_env: str = "GEMINI_API_KEY"
    max_tokens: int = 8192
    temperature: float = 0.2
    timeout: int = 120

    @classmethod
    def from_cfg(cls, cfg: Dict) -> "LLMConfig":
        section = cfg.get("llm", {})
        defaults = cls()
        return cls(
            api_base=section.get("api_base", defaults.api_base),
            model=section.get("model", defaults.model),
            api_key_env=section.get("api_key_env", defaults.api_key_env),
            max_tokens=int(section.get("max_tokens", defaults.max_tokens)),
            temperature=float(section.get("review_temperature", defaults.temperature)),
            timeout=int(section.get("timeout", defaults.timeout)),
        )


def _usage(data: Dict[str, Any]) -> Dict[str, int]:
    usage = data.get("usage") or {}
    return {key: int(usage.get(key) or 0) for key in ("prompt_tokens", "completion_tokens", "total_tokens")}


class ChatCompletionsClient:
    """Text generation through an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(self, config: LLMConfig | None = None, session: requests.Session | None = None):
        self.config = config or LLMConfig()
        api_key = os.getenv(self.config.api_key_env)
        if not api_key:
            raise ValueError(f"{self.config.api_key_env} environment variable not set")
        self.url = self.config.api_base.rstrip("/") + "/chat/completions"
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def chat(self, messages: List[Dict[str, str]], temperature: float | None = None) -> LLMResponse:
        """One completion; failures are reported in ``LLMResponse.error``."""
        payload = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature if temperature is None else temperature,
        }
        started = time.time()
        try:
            response = self.session.post(self.url, json=payload, timeout=self.config.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            return LLMResponse(finish_reason="error", time_taken=time.time() - started, error=str(e))

        choices = data.get("choices") or []
        if not choices:
            return LLMResponse(
                finish_reason="error",
                time_taken=time.time() - started,
                error=f"Unexpected response format: {data}",
            )
        choice = choices[0]
        return LLMResponse(
            content=((choice.get("message") or {}).get("content") or "").strip(),
            finish_reason=choice.get("finish_reason") or "stop",
            usage=_usage(data),
            time_taken=time.time() - started,
        )

    def generate(self, prompt: str, temperature: float | None = None) -> str:
        """Single-turn generation; raises when the call failed or came back empty."""
        response = self.chat([{"role": "user", "content": prompt.strip()}], temperature=temperature)
        if response.error:
            raise RuntimeError(f"Generation failed: {response.error}")
        if not response.content:
            raise RuntimeError(f"Generation returned no content (finish_reason={response.finish_reason})")
        logger.info(
            f"Generated {response.usage.get('completion_tokens', 0)} tokens "
            f"in {response.time_taken:.1f}s with {self.config.model}"
        )
        return response.content


def create_client(config: LLMConfig | None = None) -> ChatCompletionsClient:
    return ChatCompletionsClient(config)
