"""Hand a task over to a follow-up run."""

from elf_agent.tools.registry import RunContext, ToolDefinition

CHAIN_TASK = "chain_task"

CHAIN_MESSAGE = (
    "I've made progress on this and will continue working on it in a follow-up step."
)
DEFAULT_INSTRUCTION = "Continue the previous task where it left off."


async def chain_task(action_input: str, context: RunContext) -> dict:
    """Return the instruction the next run should pick up."""
    instruction = action_input.strip() or DEFAULT_INSTRUCTION
    return {
        "success": True,
        "message": CHAIN_MESSAGE,
        "chainedInstruction": instruction,
    }


def chain_task_tool() -> ToolDefinition:
    return ToolDefinition(
        name=CHAIN_TASK,
        description=(
            "Stop here and continue the remaining work in a follow-up run. "
            "Input: the instruction for the follow-up run, describing what is left to do."
        ),
        handler=chain_task,
    )
