"""Local-first provider selection with fallback chain."""

import logging
import os
from dataclasses import dataclass
from typing import AsyncIterator

import yaml
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from litellm import acompletion

from config.settings import settings
from elf_agent.llm.local import GenerationResult, LocalLLM

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for a provider in the fallback chain."""

    name: str
    model: str
    required: bool
    env_key: str | None = None
    check_availability: bool = False


class ProviderSelector:
    """Selects providers with local-first strategy and fallback chain."""

    def __init__(self, local_llm: LocalLLM | None = None) -> None:
        """Initialize the provider selector."""
        self._local_llm = local_llm or LocalLLM()
        self._providers = self._load_provider_config()
        self._last_provider: str | None = None

    def _load_provider_config(self) -> list[ProviderConfig]:
        """Load provider configuration from YAML."""
        config_path = settings.provider_config_path

        if not config_path.exists():
            logger.warning(f"Provider config not found: {config_path}")
            return [
                ProviderConfig(
                    name="local",
                    model=f"ollama/{settings.ollama_model}",
                    required=True,
                    check_availability=True,
                )
            ]

        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        providers = []
        for p in config.get("fallback_priority", []):
            providers.append(
                ProviderConfig(
                    name=p["name"],
                    model=self._get_model_for_provider(p["name"], config),
                    required=p.get("required", False),
                    env_key=p.get("env_key"),
                    check_availability=p.get("check_availability", False),
                )
            )

        return providers

    def _get_model_for_provider(self, name: str, config: dict) -> str:
        """Get the model string for a provider from config."""
        for model_config in config.get("model_list", []):
            if model_config["model_name"] == name:
                return model_config["litellm_params"]["model"]
        return f"ollama/{settings.ollama_model}"

    def _is_provider_available(self, provider: ProviderConfig) -> bool:
        """Check if a provider is available."""
        if provider.check_availability and provider.name == "local":
            return self._local_llm.check_availability()

        if provider.env_key:
            return bool(os.getenv(provider.env_key))

        return True

    def _get_available_providers(self) -> list[ProviderConfig]:
        """Get list of available providers."""
        available = []
        for provider in self._providers:
            if self._is_provider_available(provider):
                available.append(provider)
            else:
                logger.debug(f"Provider {provider.name} not available")
        return available

    def _external_providers(self) -> list[ProviderConfig]:
        if not settings.fallback_enabled:
            return []
        return [
            p for p in self._providers
            if p.name != "local" and self._is_provider_available(p)
        ]

    def _convert_messages(self, messages: list[BaseMessage]) -> list[dict]:
        """Convert LangChain messages to LiteLLM format."""
        converted = []
        for msg in messages:
            if isinstance(msg, SystemMessage):
                converted.append({"role": "system", "content": msg.content})
            elif isinstance(msg, HumanMessage):
                converted.append({"role": "user", "content": msg.content})
            else:
                converted.append({"role": "assistant", "content": msg.content})
        return converted

    async def _call_external_provider(
        self,
        provider: ProviderConfig,
        messages: list[dict],
    ) -> GenerationResult:
        """Call an external provider via LiteLLM."""
        response = await acompletion(model=provider.model, messages=messages)
        content = response.choices[0].message.content or ""
        tokens = response.usage.total_tokens if getattr(response, "usage", None) else None
        return GenerationResult(
            content=content,
            provider=provider.name,
            model=provider.model,
            tokens_used=tokens,
        )

    async def _stream_external_provider(
        self,
        provider: ProviderConfig,
        messages: list[dict],
    ) -> AsyncIterator[str]:
        """Stream from an external provider via LiteLLM."""
        response = await acompletion(model=provider.model, messages=messages, stream=True)
        async for chunk in response:
            delta = chunk.choices[0].delta.content if chunk.choices else None
            if delta:
                yield delta

    async def agenerate(self, messages: list[BaseMessage]) -> GenerationResult:
        """
        Generate a response using local-first strategy.

        Args:
            messages: List of conversation messages

        Returns:
            GenerationResult with response and provider info
        """
        try:
            result = await self._local_llm.agenerate(messages)
            self._last_provider = "local"
            return result
        except Exception as e:
            logger.warning(f"Local LLM failed: {e}")
            last_error: Exception = e

        converted_messages = self._convert_messages(messages)
        for provider in self._external_providers():
            try:
                result = await self._call_external_provider(provider, converted_messages)
                self._last_provider = provider.name
                logger.info(f"Using external provider: {provider.name}")
                return result
            except Exception as e:
                logger.warning(f"Provider {provider.name} failed: {e}")
                last_error = e

        raise RuntimeError("All providers failed") from last_error

    async def astream(self, messages: list[BaseMessage]) -> AsyncIterator[str]:
        """
        Stream a response using local-first strategy.

        A provider is abandoned for the next one only if it fails before
        producing any output; a stream that breaks midway is re-raised.
        """
        yielded = False
        try:
            async for chunk in self._local_llm.astream(messages):
                yielded = True
                yield chunk
            self._last_provider = "local"
            return
        except Exception as e:
            if yielded:
                raise
            logger.warning(f"Local LLM stream failed: {e}")
            last_error: Exception = e

        converted_messages = self._convert_messages(messages)
        for provider in self._external_providers():
            try:
                async for chunk in self._stream_external_provider(provider, converted_messages):
                    yielded = True
                    yield chunk
                self._last_provider = provider.name
                logger.info(f"Using external provider: {provider.name}")
                return
            except Exception as e:
                if yielded:
                    raise
                logger.warning(f"Provider {provider.name} failed: {e}")
                last_error = e

        raise RuntimeError("All providers failed") from last_error

    def get_last_provider(self) -> str | None:
        """Get the name of the last provider used."""
        return self._last_provider

    def list_available_providers(self) -> list[str]:
        """List names of available providers."""
        return [p.name for p in self._get_available_providers()]
