"""Agent components."""

from elf_agent.agent.critic import Critic, CriticVerdict
from elf_agent.agent.decision import FinalAnswer, ParseFailure, ToolCall, parse_decision
from elf_agent.agent.executor import AgentExecutor, get_executor, run
from elf_agent.agent.progress import ProgressCallback, ProgressReporter
from elf_agent.agent.state import (
    AgentProgress,
    AgentResult,
    AgentStatus,
    EntryKind,
    Scratchpad,
    ScratchpadEntry,
)

__all__ = [
    "AgentExecutor",
    "AgentProgress",
    "AgentResult",
    "AgentStatus",
    "Critic",
    "CriticVerdict",
    "EntryKind",
    "FinalAnswer",
    "ParseFailure",
    "ProgressCallback",
    "ProgressReporter",
    "Scratchpad",
    "ScratchpadEntry",
    "ToolCall",
    "get_executor",
    "parse_decision",
    "run",
]
