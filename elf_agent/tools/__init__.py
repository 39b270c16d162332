"""Tool components."""

from elf_agent.llm.content import ContentSource
from elf_agent.tools.chain import CHAIN_TASK, chain_task_tool
from elf_agent.tools.ideas import DecorationTool, GiftIdeasTool
from elf_agent.tools.planner import ArtifactStore, PlannerTool
from elf_agent.tools.recipes import RecipeSearchTool, scale_ingredients
from elf_agent.tools.registry import (
    DuplicateToolError,
    RunContext,
    ToolDefinition,
    ToolOutcome,
    ToolRegistry,
    extract_artifacts,
    normalize_outcome,
)


def create_default_registry(
    store: ArtifactStore | None = None,
    content_source: ContentSource | None = None,
) -> ToolRegistry:
    """
    Build the registry of built-in tools.

    The model-backed suggestion tools are only registered when a content
    source is given; find_recipe then asks the model before searching.
    """
    tools = [
        RecipeSearchTool(content_source).definition(),
        PlannerTool(store).definition(),
        chain_task_tool(),
    ]
    if content_source is not None:
        tools.append(GiftIdeasTool(content_source).definition())
        tools.append(DecorationTool(content_source).definition())
    return ToolRegistry(tools)


__all__ = [
    "CHAIN_TASK",
    "ArtifactStore",
    "DecorationTool",
    "DuplicateToolError",
    "GiftIdeasTool",
    "PlannerTool",
    "RecipeSearchTool",
    "RunContext",
    "ToolDefinition",
    "ToolOutcome",
    "ToolRegistry",
    "chain_task_tool",
    "create_default_registry",
    "extract_artifacts",
    "normalize_outcome",
    "scale_ingredients",
]
