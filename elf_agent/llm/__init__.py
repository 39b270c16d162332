"""LLM integration components."""

from elf_agent.llm.content import (
    ContentSource,
    GenerationError,
    GenerationTimeoutError,
    LLMContentSource,
)
from elf_agent.llm.local import GenerationResult, LocalLLM, OllamaStatus
from elf_agent.llm.selector import ProviderSelector

__all__ = [
    "ContentSource",
    "GenerationError",
    "GenerationResult",
    "GenerationTimeoutError",
    "LLMContentSource",
    "LocalLLM",
    "OllamaStatus",
    "ProviderSelector",
]
