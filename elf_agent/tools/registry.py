"""Tool registration and outcome normalization."""

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from config.settings import settings

logger = logging.getLogger(__name__)

# A tool returns either plain text or a mapping that may carry
# "success", "message" and "artifacts" alongside tool-specific fields.
ToolOutcome = str | dict[str, Any] | None

TRUNCATION_MARKER = "... [truncated]"


class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice."""


@dataclass(frozen=True)
class RunContext:
    """Caller identity passed unmodified to every tool invocation."""

    user_id: str
    scenario: str


ToolHandler = Callable[[str, RunContext], Awaitable[ToolOutcome] | ToolOutcome]


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a registered tool."""

    name: str
    description: str
    handler: ToolHandler

    async def invoke(self, action_input: str, context: RunContext) -> ToolOutcome:
        """Run the handler, awaiting it when it is a coroutine function."""
        outcome = self.handler(action_input, context)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome


class ToolRegistry:
    """
    Registry for agent tools.

    Built once at startup and shared read-only between concurrent runs.
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.add(tool)

    def add(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            raise DuplicateToolError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def register(
        self,
        name: str,
        description: str,
        handler: ToolHandler,
    ) -> ToolDefinition:
        """
        Register a new tool.

        Args:
            name: Unique tool name
            description: Capability description shown to the model
            handler: Callable taking (action_input, RunContext)

        Raises:
            DuplicateToolError: If the name is already taken
        """
        tool = ToolDefinition(name=name, description=description, handler=handler)
        self.add(tool)
        return tool

    def get_tool(self, name: str) -> ToolDefinition | None:
        """Get a tool definition by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        """List all registered tools."""
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def describe(self) -> str:
        """Render the tool catalog for the system prompt."""
        return "\n".join(f"- {t.name}: {t.description}" for t in self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def normalize_outcome(outcome: ToolOutcome, max_chars: int | None = None) -> str:
    """
    Render a tool outcome as observation text.

    Strings are used as-is; anything else is JSON encoded. A structured
    outcome reporting success=false with a message renders as that error.
    Outcomes JSON cannot encode (non-string keys, cycles) fall back to str().
    The result is capped at max_chars, then suffixed with a marker.
    """
    if max_chars is None:
        max_chars = settings.agent_observation_max_chars

    if isinstance(outcome, str):
        text = outcome
    elif (
        isinstance(outcome, dict)
        and outcome.get("success") is False
        and outcome.get("message")
    ):
        text = f"Error: {outcome['message']}"
    else:
        try:
            text = json.dumps(outcome, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Tool outcome is not JSON serializable, using str(): {e}")
            text = str(outcome)

    if len(text) > max_chars:
        text = text[:max_chars] + TRUNCATION_MARKER
    return text


def extract_artifacts(outcome: ToolOutcome) -> tuple[bool, Any]:
    """Return (found, artifacts) for outcomes carrying an artifacts field."""
    if isinstance(outcome, dict) and outcome.get("artifacts") is not None:
        return True, outcome["artifacts"]
    return False, None
