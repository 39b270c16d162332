"""Prompt-in, text-out content generation with per-call timeouts."""

import asyncio
import json
import logging
import re
from typing import Any, AsyncIterator, Protocol

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from config.settings import settings
from elf_agent.llm.selector import ProviderSelector

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


class GenerationError(Exception):
    """Raised when the content source cannot produce a response."""


class GenerationTimeoutError(GenerationError):
    """Raised when no chunk or response arrives within the allowed time."""


class ContentSource(Protocol):
    """Text generation service used by the agent loop and the critic."""

    def generate_stream(
        self,
        prompt: str,
        system_instruction: str | None = None,
        timeout_ms: int | None = None,
    ) -> AsyncIterator[str]: ...

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        timeout_ms: int | None = None,
    ) -> str: ...


async def with_chunk_timeout(
    stream: AsyncIterator[str],
    timeout_ms: int,
) -> AsyncIterator[str]:
    """
    Re-yield a stream, failing if any single chunk takes too long.

    The clock restarts after every chunk, so a long generation that keeps
    producing output is never cut off.

    Raises:
        GenerationTimeoutError: If the next chunk does not arrive in time.
    """
    iterator = stream.__aiter__()
    try:
        while True:
            try:
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout_ms / 1000)
            except StopAsyncIteration:
                return
            except asyncio.TimeoutError as exc:
                raise GenerationTimeoutError(
                    f"No output received within {timeout_ms} ms"
                ) from exc
            yield chunk
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


def _load_json(text: str) -> Any:
    try:
        return json.loads(text, strict=False)
    except json.JSONDecodeError:
        return None


def extract_json_object(raw: str) -> Any:
    """Best-effort JSON decode of model output; None when nothing parses."""
    cleaned = _FENCE_PATTERN.sub("", raw).strip()
    data = _load_json(cleaned)
    if data is not None:
        return data

    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end > start:
        return _load_json(raw[start : end + 1])
    return None


class LLMContentSource:
    """Content source backed by the local-first provider selector."""

    def __init__(self, selector: ProviderSelector | None = None) -> None:
        self._selector = selector or ProviderSelector()

    @staticmethod
    def _build_messages(prompt: str, system_instruction: str | None) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        if system_instruction:
            messages.append(SystemMessage(content=system_instruction))
        messages.append(HumanMessage(content=prompt))
        return messages

    async def generate_stream(
        self,
        prompt: str,
        system_instruction: str | None = None,
        timeout_ms: int | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream a response chunk by chunk.

        Args:
            prompt: User prompt
            system_instruction: Optional system message
            timeout_ms: Maximum wait for each chunk. Defaults to settings.agent_stream_timeout_ms.

        Yields:
            Response chunks as strings
        """
        if timeout_ms is None:
            timeout_ms = settings.agent_stream_timeout_ms
        messages = self._build_messages(prompt, system_instruction)
        try:
            async for chunk in with_chunk_timeout(self._selector.astream(messages), timeout_ms):
                yield chunk
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(str(e)) from e

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        timeout_ms: int | None = None,
    ) -> str:
        """
        Generate a complete response in one call.

        Raises:
            GenerationTimeoutError: If the provider does not answer in time.
            GenerationError: If every provider fails.
        """
        if timeout_ms is None:
            timeout_ms = settings.agent_critic_timeout_ms
        messages = self._build_messages(prompt, system_instruction)
        try:
            result = await asyncio.wait_for(
                self._selector.agenerate(messages),
                timeout_ms / 1000,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationTimeoutError(
                f"No response received within {timeout_ms} ms"
            ) from exc
        except Exception as e:
            raise GenerationError(str(e)) from e

        logger.debug(f"Generated {len(result.content)} chars via {result.provider}")
        return result.content
