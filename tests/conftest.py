"""
Pytest configuration and shared fixtures.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from elf_agent.agent.critic import Critic
from elf_agent.agent.executor import AgentExecutor
from elf_agent.tools.registry import ToolRegistry

# Queue marker: the call never produces output
HANG = object()

ACCEPT = '{"valid": true}'


def tool_call(action: str, action_input: Any = "", thought: str = "") -> str:
    """Model output asking for a tool."""
    return json.dumps(
        {
            "thought": thought or f"I should use {action}.",
            "action": action,
            "action_input": action_input,
        }
    )


def final_answer(answer: str, thought: str = "I have the answer.") -> str:
    """Model output proposing an answer."""
    return json.dumps({"thought": thought, "final_answer": answer})


def reject(reason: str) -> str:
    return json.dumps({"valid": False, "reason": reason})


class FakeContentSource:
    """
    Scripted content source.

    Stream responses and single-shot replies (critic verdicts, tool
    generations) are consumed in order. A queued exception is raised instead
    of producing output, and HANG blocks until the caller's timeout fires.
    Single-shot calls with nothing queued return an accepting verdict.
    """

    def __init__(
        self,
        responses: list[Any] | None = None,
        verdicts: list[Any] | None = None,
        chunk_size: int = 7,
    ) -> None:
        self.responses = list(responses or [])
        self.verdicts = list(verdicts or [])
        self.chunk_size = chunk_size
        self.prompts: list[str] = []
        self.system_prompts: list[str | None] = []
        self.critic_prompts: list[str] = []

    async def generate_stream(
        self,
        prompt: str,
        system_instruction: str | None = None,
        timeout_ms: int | None = None,
    ):
        self.prompts.append(prompt)
        self.system_prompts.append(system_instruction)
        item = self.responses.pop(0)
        if item is HANG:
            await asyncio.sleep(3600)
        if isinstance(item, Exception):
            raise item
        for i in range(0, len(item), self.chunk_size):
            await asyncio.sleep(0)
            yield item[i : i + self.chunk_size]

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        timeout_ms: int | None = None,
    ) -> str:
        self.critic_prompts.append(prompt)
        if not self.verdicts:
            return ACCEPT
        item = self.verdicts.pop(0)
        if item is HANG:
            await asyncio.sleep(3600)
        if isinstance(item, Exception):
            raise item
        return item


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class RecordingTool:
    """Tool handler that records its inputs and replays a fixed outcome."""

    def __init__(self, outcome: Any = "ok") -> None:
        self.outcome = outcome
        self.calls: list[tuple[str, Any]] = []

    async def __call__(self, action_input, context):
        self.calls.append((action_input, context))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def recipe_tool() -> RecordingTool:
    return RecordingTool(
        {
            "name": "Chocolate Chip Cookies",
            "ingredients": [{"item": "flour", "quantity": 2, "unit": "cups"}],
            "servings": 4,
        }
    )


@pytest.fixture
def planner_tool() -> RecordingTool:
    return RecordingTool(
        {
            "success": True,
            "message": "Added to-do: Bake cookies",
            "artifacts": {"todos": [{"id": "a1", "text": "Bake cookies", "completed": False}]},
        }
    )


@pytest.fixture
def registry(recipe_tool, planner_tool) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register("find_recipe", "Search recipes by dish name.", recipe_tool)
    registry.register("manage_planner", "Update the holiday planner.", planner_tool)
    return registry


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_executor(registry, clock):
    """Build an executor over a scripted source with short timeouts."""

    def _make(source: FakeContentSource, **kwargs) -> AgentExecutor:
        kwargs.setdefault("stream_timeout_ms", 1000)
        kwargs.setdefault("tool_timeout_ms", 1000)
        kwargs.setdefault("progress_interval_ms", 0)
        kwargs.setdefault("clock", clock)
        critic = kwargs.pop("critic", None) or Critic(source, timeout_ms=1000)
        return AgentExecutor(source, kwargs.pop("registry", registry), critic=critic, **kwargs)

    return _make
