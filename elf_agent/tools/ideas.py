"""Model-backed suggestion tools: gift ideas and decoration themes."""

import logging
from typing import Any

from config.settings import settings
from elf_agent.llm.content import ContentSource, extract_json_object
from elf_agent.tools.registry import RunContext, ToolDefinition

logger = logging.getLogger(__name__)

GIFT_PROMPT = """Suggest 3 unique and thoughtful gift ideas for someone who matches this description: "{query}".
Draw inspiration from reputable review sites like The Wirecutter, New York Times, and Reddit communities (e.g., r/BuyItForLife, r/giftideas).

Format the output as a valid JSON array of objects with the following structure:
[
  {{
    "name": "Gift Name",
    "description": "Brief description and why it is recommended...",
    "budget": {{ "min": 50, "max": 100 }}
  }}
]
Return ONLY the JSON array."""

DECORATION_PROMPT = (
    'Suggest 3 festive decoration themes for a room described as: "{query}". '
    "List specific items for each theme."
)


class GiftIdeasTool:
    """Asks the model for gift ideas; an empty list when it cannot."""

    name = "find_gift"
    description = (
        "Provides gift ideas based on a description of the recipient, "
        "aggregating wisdom from Wirecutter, Reddit, and NYT. Input: who the gift is for."
    )

    def __init__(self, content_source: ContentSource) -> None:
        self._content = content_source

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, handler=self.run)

    async def run(self, action_input: str, context: RunContext) -> list[dict[str, Any]]:
        try:
            raw = await self._content.generate(
                GIFT_PROMPT.format(query=action_input.strip()),
                None,
                settings.tool_generation_timeout_ms,
            )
        except Exception as e:
            logger.error(f"Error generating gift ideas: {e}")
            return []

        ideas = extract_json_object(raw)
        if isinstance(ideas, dict):
            ideas = [ideas]
        if not isinstance(ideas, list):
            logger.warning(f"Unreadable gift ideas: {raw[:200]!r}")
            return []
        return [idea for idea in ideas if isinstance(idea, dict)]


class DecorationTool:
    """Asks the model for decoration themes as free text."""

    name = "get_decoration_suggestions"
    description = (
        "Provides decoration suggestions for a room based on a description of it. "
        "Input: the room and its style."
    )

    def __init__(self, content_source: ContentSource) -> None:
        self._content = content_source

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, handler=self.run)

    async def run(self, action_input: str, context: RunContext) -> str:
        try:
            return await self._content.generate(
                DECORATION_PROMPT.format(query=action_input.strip()),
                None,
                settings.tool_generation_timeout_ms,
            )
        except Exception as e:
            logger.error(f"Error generating decoration suggestions: {e}")
            return f"I couldn't generate decoration suggestions at the moment. {e}"
