"""Ollama access for the local-first provider chain."""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage
    from langchain_ollama import ChatOllama

from config.settings import settings

logger = logging.getLogger(__name__)

_STATUS_TIMEOUT = 5.0


@dataclass
class GenerationResult:
    """A complete response and the provider that produced it."""

    content: str
    provider: str
    model: str
    tokens_used: int | None = None


@dataclass
class OllamaStatus:
    """What the Ollama server reported about itself."""

    reachable: bool
    model: str
    models: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def model_loaded(self) -> bool:
        return any(model_matches(self.model, name) for name in self.models)


def model_matches(wanted: str, installed: str) -> bool:
    """
    Compare model names the way Ollama resolves them.

    An untagged name refers to its ":latest" tag, so "mistral" matches
    "mistral:latest" but not "mistral:7b".
    """
    if ":" not in wanted:
        wanted = f"{wanted}:latest"
    if ":" not in installed:
        installed = f"{installed}:latest"
    return wanted == installed


def message_text(content: Any) -> str:
    """Flatten chat message content, which may be a list of content blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


class LocalLLM:
    """Chat model served by Ollama."""

    def __init__(
        self,
        model: str | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
    ) -> None:
        self._model = model or settings.ollama_model
        self._base_url = base_url or settings.ollama_base_url
        self._temperature = (
            temperature if temperature is not None else settings.ollama_temperature
        )
        self._llm: Any = None

    @property
    def model(self) -> str:
        return self._model

    def _build_llm(self) -> "ChatOllama":
        from langchain_ollama import ChatOllama

        return ChatOllama(
            base_url=self._base_url,
            model=self._model,
            temperature=self._temperature,
            num_ctx=settings.ollama_num_ctx,
        )

    def _get_llm(self) -> "ChatOllama":
        if self._llm is None:
            self._llm = self._build_llm()
        return self._llm

    def status(self, transport: httpx.BaseTransport | None = None) -> OllamaStatus:
        """Ask the server which models it has installed."""
        try:
            with httpx.Client(timeout=_STATUS_TIMEOUT, transport=transport) as client:
                response = client.get(f"{self._base_url}/api/tags")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Ollama status check failed: {e}")
            return OllamaStatus(reachable=False, model=self._model, error=str(e))

        models = [m["name"] for m in data.get("models", []) if m.get("name")]
        return OllamaStatus(reachable=True, model=self._model, models=models)

    def check_availability(self) -> bool:
        """True when the server is up and the configured model is installed."""
        return self.status().model_loaded

    async def agenerate(self, messages: list["BaseMessage"]) -> GenerationResult:
        response = await self._get_llm().ainvoke(messages)
        usage = getattr(response, "usage_metadata", None) or {}
        return GenerationResult(
            content=message_text(response.content),
            provider="ollama",
            model=self._model,
            tokens_used=usage.get("total_tokens"),
        )

    async def astream(self, messages: list["BaseMessage"]) -> AsyncIterator[str]:
        """Yield the non-empty text of each streamed chunk."""
        async for chunk in self._get_llm().astream(messages):
            text = message_text(chunk.content)
            if text:
                yield text
