"""Planner tool: to-dos and budget kept per user and scenario."""

import json
import logging
import uuid
from copy import deepcopy
from typing import Any

from elf_agent.tools.registry import RunContext, ToolDefinition

logger = logging.getLogger(__name__)

MAX_TODOS = 100
MAX_TODO_CHARS = 500


def _empty_artifacts() -> dict[str, Any]:
    return {"todos": [], "recipes": [], "gifts": [], "budget": None}


class ArtifactStore:
    """
    In-process artifact storage keyed by (user_id, scenario).

    Stands in for the shared external store; concurrent runs writing the
    same key get last-write-wins.
    """

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], dict[str, Any]] = {}

    def load(self, context: RunContext) -> dict[str, Any]:
        return deepcopy(self._data.get((context.user_id, context.scenario), _empty_artifacts()))

    def save(self, context: RunContext, artifacts: dict[str, Any]) -> None:
        self._data[(context.user_id, context.scenario)] = deepcopy(artifacts)


class PlannerTool:
    """Handles manage_planner actions against an ArtifactStore."""

    name = "manage_planner"
    description = (
        "Manage the user's holiday planner. Input is a JSON string "
        '{"action": "...", "data": ...} where action is one of add_todo (data: text), '
        "complete_todo (data: id or text), remove_todo (data: id or text), "
        "set_budget (data: number) or list."
    )

    def __init__(self, store: ArtifactStore | None = None) -> None:
        self._store = store or ArtifactStore()

    @property
    def store(self) -> ArtifactStore:
        return self._store

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, handler=self.run)

    async def run(self, action_input: str, context: RunContext) -> dict[str, Any]:
        try:
            request = json.loads(action_input)
        except json.JSONDecodeError:
            return {"success": False, "message": "Input must be a JSON object with an action."}
        if not isinstance(request, dict):
            return {"success": False, "message": "Input must be a JSON object with an action."}

        action = request.get("action")
        data = request.get("data")
        artifacts = self._store.load(context)

        if action == "list":
            return {"success": True, "message": self._summary(artifacts)}

        if action == "add_todo":
            text = str(data or "").strip()
            if not text:
                return {"success": False, "message": "add_todo needs the to-do text as data."}
            if len(artifacts["todos"]) >= MAX_TODOS:
                return {"success": False, "message": f"The planner already holds {MAX_TODOS} to-dos."}
            item = {"id": uuid.uuid4().hex[:8], "text": text[:MAX_TODO_CHARS], "completed": False}
            artifacts["todos"].append(item)
            message = f"Added to-do: {item['text']}"
        elif action in ("complete_todo", "remove_todo"):
            item = self._find_todo(artifacts, data)
            if item is None:
                return {"success": False, "message": f"No to-do matches {data!r}."}
            if action == "complete_todo":
                item["completed"] = True
                message = f"Completed to-do: {item['text']}"
            else:
                artifacts["todos"].remove(item)
                message = f"Removed to-do: {item['text']}"
        elif action == "set_budget":
            try:
                budget = float(data)
            except (TypeError, ValueError):
                return {"success": False, "message": "set_budget needs a numeric amount as data."}
            if budget < 0:
                return {"success": False, "message": "Budget cannot be negative."}
            artifacts["budget"] = budget
            message = f"Budget set to {budget:g}"
        else:
            return {"success": False, "message": f"Unknown planner action: {action}"}

        self._store.save(context, artifacts)
        logger.info(f"Planner updated for {context.user_id}/{context.scenario}: {action}")
        return {"success": True, "message": message, "artifacts": artifacts}

    @staticmethod
    def _find_todo(artifacts: dict[str, Any], key: Any) -> dict[str, Any] | None:
        needle = str(key or "").strip().lower()
        if not needle:
            return None
        for item in artifacts["todos"]:
            if item["id"] == needle or item["text"].lower() == needle:
                return item
        return None

    @staticmethod
    def _summary(artifacts: dict[str, Any]) -> str:
        todos = artifacts["todos"]
        if not todos:
            lines = ["No to-dos yet."]
        else:
            lines = [
                f"[{'x' if t['completed'] else ' '}] {t['text']} (id: {t['id']})"
                for t in todos
            ]
        if artifacts.get("budget") is not None:
            lines.append(f"Budget: {artifacts['budget']:g}")
        return "\n".join(lines)
