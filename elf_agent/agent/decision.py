"""Turn raw model output into a tool call or a proposed final answer."""

import json
from dataclasses import dataclass
from typing import Any

from elf_agent.llm.content import extract_json_object


@dataclass(frozen=True)
class ToolCall:
    """The model asked to run a tool."""

    thought: str
    action: str
    action_input: str


@dataclass(frozen=True)
class FinalAnswer:
    """The model proposed an answer for the user."""

    thought: str
    answer: str


@dataclass(frozen=True)
class ParseFailure:
    """The output could not be read as a decision."""

    diagnostic: str
    raw: str


Decision = ToolCall | FinalAnswer

INVALID_JSON = "Invalid JSON returned. Please format as strict JSON."
MISSING_FIELDS = (
    'Response JSON must contain either "action" or "final_answer". '
    "Please format as strict JSON."
)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def parse_decision(raw: str) -> Decision | ParseFailure:
    """
    Parse one complete model response.

    Tries, in order: the whole text with markdown fences removed, then the
    span from the first "{" to the last "}" of the raw text. A response that
    parses but names neither an action nor a final answer is a failure too.

    Args:
        raw: Full buffered text of one generation call

    Returns:
        ToolCall, FinalAnswer, or ParseFailure with a diagnostic for the model
    """
    data = extract_json_object(raw)
    if not isinstance(data, dict):
        return ParseFailure(diagnostic=INVALID_JSON, raw=raw)

    thought = _as_text(data.get("thought"))

    answer = data.get("final_answer")
    if answer not in (None, ""):
        return FinalAnswer(thought=thought, answer=_as_text(answer))

    action = data.get("action")
    if isinstance(action, str) and action.strip():
        return ToolCall(
            thought=thought,
            action=action.strip(),
            action_input=_as_text(data.get("action_input")),
        )

    return ParseFailure(diagnostic=MISSING_FIELDS, raw=raw)
