"""Per-run state for the agent loop: scratchpad, progress snapshots and results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from elf_agent.tools.registry import ToolOutcome


class EntryKind(Enum):
    """Scratchpad line kinds, valued by the prefix they render with."""

    THOUGHT = "Thought"
    ACTION = "Action"
    OBSERVATION = "Observation"
    CRITIC = "Critic"
    SYSTEM = "System"
    FINAL_ANSWER = "Final Answer"


@dataclass(frozen=True)
class ScratchpadEntry:
    """One immutable transcript line."""

    kind: EntryKind
    text: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.text}"


class Scratchpad:
    """
    Append-only transcript of a single run.

    Every line is replayed verbatim into each subsequent prompt, so entries
    are never edited or removed once added.
    """

    def __init__(self) -> None:
        self._entries: list[ScratchpadEntry] = []

    def append(self, kind: EntryKind, text: str) -> ScratchpadEntry:
        entry = ScratchpadEntry(kind=kind, text=text)
        self._entries.append(entry)
        return entry

    def thought(self, text: str) -> None:
        self.append(EntryKind.THOUGHT, text)

    def action(self, tool_name: str, action_input: str) -> None:
        self.append(EntryKind.ACTION, f'{tool_name}("{action_input}")')

    def observation(self, text: str) -> None:
        self.append(EntryKind.OBSERVATION, text)

    def critic(self, reason: str) -> None:
        self.append(
            EntryKind.CRITIC,
            f"Your answer was rejected. Reason: {reason}. Please fix this and try again.",
        )

    def system(self, note: str) -> None:
        self.append(EntryKind.SYSTEM, note)

    def final_answer(self, answer: str) -> None:
        self.append(EntryKind.FINAL_ANSWER, answer)

    @property
    def entries(self) -> tuple[ScratchpadEntry, ...]:
        return tuple(self._entries)

    def lines(self) -> list[str]:
        """Rendered lines, as a fresh list the caller may keep."""
        return [str(entry) for entry in self._entries]

    def count(self, kind: EntryKind) -> int:
        return sum(1 for entry in self._entries if entry.kind is kind)

    def render(self) -> str:
        return "\n".join(self.lines())

    def __len__(self) -> int:
        return len(self._entries)


class AgentStatus(Enum):
    """Loop status reported with every progress snapshot."""

    STARTING = "starting"
    THINKING = "thinking"
    TOOL = "tool"
    FINALIZING = "finalizing"
    ERROR = "error"
    DONE = "done"


@dataclass
class AgentProgress:
    """Snapshot of loop state pushed to the progress sink."""

    step: int
    max_steps: int
    status: AgentStatus
    message: str
    transcript_so_far: list[str] = field(default_factory=list)
    last_tool_used: str | None = None


@dataclass
class AgentResult:
    """Terminal result returned exactly once per run."""

    final_answer: str
    steps: list[str]
    artifacts_updated: bool = False
    updated_artifacts: Any = None
    last_tool_used: str | None = None
    last_tool_result: ToolOutcome = None
    chained_instruction: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used by API clients."""
        return {
            "finalAnswer": self.final_answer,
            "steps": list(self.steps),
            "artifactsUpdated": self.artifacts_updated,
            "updatedArtifacts": self.updated_artifacts,
            "lastToolUsed": self.last_tool_used,
            "lastToolResult": self.last_tool_result,
            "chainedInstruction": self.chained_instruction,
        }
