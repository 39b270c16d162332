"""Recipe search tool: model-generated recipe first, TheMealDB as fallback."""

import logging
import re
from typing import Any

import httpx

from config.settings import settings
from elf_agent.llm.content import ContentSource, extract_json_object
from elf_agent.tools.registry import RunContext, ToolDefinition

logger = logging.getLogger(__name__)

_QUANTITY_PATTERN = re.compile(r"([\d.]+)\s*(.*)")

RECIPE_PROMPT = """Find or generate a recipe for "{query}".
Prioritize well-known recipes from sources like NYT Cooking, America's Test Kitchen, or Bon Appetit.
Provide the recipe name, a brief description, a list of ingredients (with quantities), and step-by-step instructions.
Format the output as a valid JSON object with the following structure:
{{
  "name": "Recipe Name",
  "description": "Brief description...",
  "ingredients": [
    {{"item": "ingredient name", "quantity": 1, "unit": "unit"}}
  ],
  "instructions": ["Step 1", "Step 2"],
  "servings": 4,
  "prepTime": "10 min",
  "cookTime": "20 min"
}}
Return ONLY the JSON object."""


def normalize_meal(meal: dict[str, Any]) -> dict[str, Any]:
    """Convert a MealDB record into the recipe shape used by the planner."""
    ingredients = []
    for i in range(1, 21):
        item = (meal.get(f"strIngredient{i}") or "").strip()
        if not item:
            continue
        measure = (meal.get(f"strMeasure{i}") or "").strip()
        quantity = 0.0
        unit = measure
        match = _QUANTITY_PATTERN.match(measure)
        if match:
            try:
                quantity = float(match.group(1))
                unit = match.group(2)
            except ValueError:
                pass
        ingredients.append({"item": item, "quantity": quantity, "unit": unit})

    instructions = [
        line.strip()
        for line in (meal.get("strInstructions") or "").splitlines()
        if line.strip()
    ]
    return {
        "name": meal.get("strMeal", ""),
        "description": f"Category: {meal.get('strCategory')}, Area: {meal.get('strArea')}.",
        "ingredients": ingredients,
        "instructions": instructions,
        "servings": 4,
        "prepTime": "Unknown",
        "cookTime": "Unknown",
    }


def scale_ingredients(
    ingredients: list[dict[str, Any]],
    original_servings: float,
    target_servings: float,
) -> list[dict[str, Any]]:
    """
    Scale ingredient quantities to a new serving count.

    Returns the ingredients unchanged when either serving count is not positive.
    """
    if original_servings <= 0 or target_servings <= 0:
        return ingredients

    ratio = target_servings / original_servings
    return [
        {**ingredient, "quantity": (ingredient.get("quantity") or 0) * ratio}
        for ingredient in ingredients
    ]


class RecipeSearchTool:
    """
    Looks up a recipe by name.

    With a content source the model is asked for a recipe first; the
    MealDB-compatible search API is used when that fails or is unavailable.
    """

    name = "find_recipe"
    description = (
        "Searches for a recipe by name or dish, favouring well-known cooking sources. "
        "Input: the dish to search for."
    )

    def __init__(
        self,
        content_source: ContentSource | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._content = content_source
        self._base_url = base_url or settings.recipe_api_url
        self._timeout = timeout if timeout is not None else settings.recipe_api_timeout
        self._transport = transport

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, handler=self.run)

    async def run(self, action_input: str, context: RunContext) -> dict[str, Any] | str:
        query = action_input.strip()
        if not query:
            return "Error: no recipe query provided."

        if self._content is not None:
            recipe = await self._generate(query)
            if recipe is not None:
                return recipe

        return await self._search(query)

    async def _generate(self, query: str) -> dict[str, Any] | None:
        try:
            raw = await self._content.generate(
                RECIPE_PROMPT.format(query=query),
                None,
                settings.tool_generation_timeout_ms,
            )
        except Exception as e:
            logger.warning(f"Recipe generation failed, falling back to search: {e}")
            return None

        recipe = extract_json_object(raw)
        if not isinstance(recipe, dict) or not recipe.get("name"):
            logger.warning(f"Unusable generated recipe for {query!r}, falling back to search")
            return None
        return recipe

    async def _search(self, query: str) -> dict[str, Any] | str:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.get(self._base_url, params={"s": query})
            response.raise_for_status()
            data = response.json()

        meals = data.get("meals") or []
        logger.info(f"Recipe search returned {len(meals)} results for: {query}")
        if not meals:
            return f"No recipe found for '{query}'."
        return normalize_meal(meals[0])
