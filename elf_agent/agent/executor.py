"""Reason-act-observe loop that turns one request into a reviewed answer."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from config.settings import settings
from elf_agent.agent.critic import Critic
from elf_agent.agent.decision import FinalAnswer, ParseFailure, ToolCall, parse_decision
from elf_agent.agent.progress import ProgressCallback, ProgressReporter
from elf_agent.agent.state import AgentResult, AgentStatus, Scratchpad
from elf_agent.llm.content import ContentSource, with_chunk_timeout
from elf_agent.tools.chain import CHAIN_TASK
from elf_agent.tools.registry import (
    RunContext,
    ToolOutcome,
    ToolRegistry,
    extract_artifacts,
    normalize_outcome,
)

logger = logging.getLogger(__name__)

GENERATION_ERROR_ANSWER = "I encountered an error while thinking. Please try again."
STEP_LIMIT_ANSWER = (
    "I stopped because I hit the thinking limit. However, I have performed "
    "some actions (check the plan below)."
)
STEP_LIMIT_NO_ACTIONS_ANSWER = (
    "I stopped because I hit the thinking limit before finishing. "
    "Please try again with a simpler or more specific request."
)
TIMEOUT_ANSWER = (
    "This is taking a while, so I've saved my progress and will keep "
    "working on it in a follow-up step."
)

SYSTEM_PREAMBLE = """You are Santa's Elf, an autonomous holiday assistant.

TOOLS AVAILABLE:
{tools}

YOUR GOAL:
Answer the user's request by reasoning and using tools if necessary.
You operate in a loop: Thought -> Action -> Observation.

RESPONSE FORMAT:
You must return a valid JSON object. No markdown outside the JSON.

Option 1: Execute a Tool
{{
    "thought": "I need to check x...",
    "action": "tool_name",
    "action_input": "string input for the tool"
}}

Option 2: Final Answer (When done)
{{
    "thought": "I have the answer...",
    "final_answer": "Your response to the user..."
}}

RULES:
1. If the user asks for something simple (e.g., "hi"), just give a "final_answer".
2. If you need data (recipes, gifts, current plan status), use a tool.
3. "action_input" must be a string. If the tool needs JSON, stringify it.
4. Do not hallucinate tool outputs. Wait for the "Observation".
5. Your final answer will be reviewed by a Critic. Ensure it meets all user preferences.
6. SELF CORRECTION: If the Critic rejects your answer, analyze the specific reason and generate a *new* corrected Final Answer. Do not repeat the same answer.
7. If the task is too large to finish now, use "chain_task" with an instruction describing the remaining work."""


def _setting(value: Any, default: Any) -> Any:
    return default if value is None else value


@dataclass
class _RunState:
    """Mutable state owned by exactly one run."""

    request: str
    context: RunContext
    max_steps: int
    scratchpad: Scratchpad = field(default_factory=Scratchpad)
    final_answer: str = ""
    artifacts_updated: bool = False
    updated_artifacts: Any = None
    last_tool_used: str | None = None
    last_tool_result: ToolOutcome = None
    chained_instruction: str | None = None
    tool_calls: int = 0

    def result(self) -> AgentResult:
        return AgentResult(
            final_answer=self.final_answer,
            steps=self.scratchpad.lines(),
            artifacts_updated=self.artifacts_updated,
            updated_artifacts=self.updated_artifacts,
            last_tool_used=self.last_tool_used,
            last_tool_result=self.last_tool_result,
            chained_instruction=self.chained_instruction,
        )


class AgentExecutor:
    """
    Drives the Thought -> Action -> Observation cycle.

    One executor can serve many concurrent runs: everything a run mutates
    lives in its own _RunState, and the tool registry is only read.

    Example:
        executor = AgentExecutor(LLMContentSource(), create_default_registry())
        result = await executor.run("u1", "christmas", "Find cookies", context_info)
    """

    def __init__(
        self,
        content_source: ContentSource,
        tool_registry: ToolRegistry,
        critic: Critic | None = None,
        stream_timeout_ms: int | None = None,
        tool_timeout_ms: int | None = None,
        observation_max_chars: int | None = None,
        progress_interval_ms: int | None = None,
        progress_timeout_ms: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._content = content_source
        self._tools = tool_registry
        self._critic = critic if critic is not None else Critic(content_source)
        self._stream_timeout_ms = _setting(stream_timeout_ms, settings.agent_stream_timeout_ms)
        self._tool_timeout_ms = _setting(tool_timeout_ms, settings.agent_tool_timeout_ms)
        self._observation_max_chars = _setting(
            observation_max_chars, settings.agent_observation_max_chars
        )
        self._progress_interval_ms = progress_interval_ms
        self._progress_timeout_ms = progress_timeout_ms
        self._clock = clock

    @property
    def tool_registry(self) -> ToolRegistry:
        return self._tools

    async def run(
        self,
        user_id: str,
        scenario: str,
        prompt: str,
        context_info: str,
        max_steps: int | None = None,
        timeout_ms: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AgentResult:
        """
        Run the loop until an answer is accepted or a budget runs out.

        Never raises for model, tool, critic or progress-sink failures;
        every outcome is reported through the returned AgentResult.

        Args:
            user_id: Caller identity, passed to tools
            scenario: Active scenario slug, passed to tools
            prompt: The user's request
            context_info: Serialized context (artifacts, preferences, history)
            max_steps: Step ceiling. Defaults to settings.agent_max_steps.
            timeout_ms: Whole-run budget before chaining. Defaults to settings.agent_loop_timeout_ms.
            on_progress: Optional sink receiving an AgentProgress per state change

        Returns:
            AgentResult with a non-empty final_answer
        """
        max_steps = _setting(max_steps, settings.agent_max_steps)
        timeout_ms = _setting(timeout_ms, settings.agent_loop_timeout_ms)
        state = _RunState(
            request=prompt,
            context=RunContext(user_id=user_id, scenario=scenario),
            max_steps=max_steps,
        )
        reporter = ProgressReporter(
            on_progress,
            max_steps,
            interval_ms=self._progress_interval_ms,
            timeout_ms=self._progress_timeout_ms,
        )
        started = self._clock()

        logger.info(f'Starting loop for: "{prompt}"')
        await reporter.report(0, AgentStatus.STARTING, "Starting", state.scratchpad)

        step = 0
        final_status = AgentStatus.DONE
        for step in range(1, max_steps + 1):
            elapsed_ms = (self._clock() - started) * 1000
            if elapsed_ms >= timeout_ms:
                self._chain_on_timeout(state, elapsed_ms)
                break

            system_prompt = SYSTEM_PREAMBLE.format(tools=self._tools.describe())
            user_prompt = self._build_prompt(state, scenario, context_info, step)

            try:
                raw = await self._generate(user_prompt, system_prompt, step, state, reporter)
            except Exception as e:
                logger.error(f"LLM generation failed on step {step}: {e}")
                state.scratchpad.system("LLM Generation Error. Stopping.")
                state.final_answer = GENERATION_ERROR_ANSWER
                final_status = AgentStatus.ERROR
                break

            decision = parse_decision(raw)

            if isinstance(decision, ParseFailure):
                logger.warning(f"Unparsable response on step {step}: {raw[:200]!r}")
                state.scratchpad.system(decision.diagnostic)
                continue

            if isinstance(decision, FinalAnswer):
                if await self._review(state, decision, context_info, step, reporter):
                    break
                continue

            if await self._dispatch(state, decision, step, reporter):
                break

        if not state.final_answer:
            logger.warning(f"Step limit of {max_steps} reached without an answer")
            state.final_answer = (
                STEP_LIMIT_ANSWER if state.tool_calls else STEP_LIMIT_NO_ACTIONS_ANSWER
            )

        await reporter.report(
            step, final_status, state.final_answer, state.scratchpad, state.last_tool_used
        )
        return state.result()

    def _build_prompt(
        self,
        state: _RunState,
        scenario: str,
        context_info: str,
        step: int,
    ) -> str:
        return f"""Scenario: {scenario}

CONTEXT:
{context_info}

USER INPUT: "{state.request}"

SCRATCHPAD (History of this task):
{state.scratchpad.render()}

(Step {step}/{state.max_steps}) What is your next step? Return JSON."""

    async def _generate(
        self,
        prompt: str,
        system_prompt: str,
        step: int,
        state: _RunState,
        reporter: ProgressReporter,
    ) -> str:
        """Buffer one streamed response, reporting its tail while it grows."""
        buffered = ""
        stream = self._content.generate_stream(prompt, system_prompt, self._stream_timeout_ms)
        async for chunk in with_chunk_timeout(stream, self._stream_timeout_ms):
            buffered += chunk
            await reporter.thinking(step, buffered, state.scratchpad, state.last_tool_used)
        return buffered

    async def _review(
        self,
        state: _RunState,
        decision: FinalAnswer,
        context_info: str,
        step: int,
        reporter: ProgressReporter,
    ) -> bool:
        """Run the critic on a proposed answer. Returns True when accepted."""
        logger.info("Proposing answer. Running critic...")
        await reporter.report(
            step,
            AgentStatus.FINALIZING,
            "Reviewing proposed answer",
            state.scratchpad,
            state.last_tool_used,
        )
        verdict = await self._critic.review(state.request, context_info, decision.answer)

        state.scratchpad.thought(decision.thought)
        if verdict.valid:
            state.scratchpad.final_answer(decision.answer)
            state.final_answer = decision.answer
            return True

        logger.info(f"Critic rejected: {verdict.reason}")
        state.scratchpad.critic(verdict.reason or "")
        return False

    async def _dispatch(
        self,
        state: _RunState,
        decision: ToolCall,
        step: int,
        reporter: ProgressReporter,
    ) -> bool:
        """Execute a tool call. Returns True when the run should stop."""
        tool = self._tools.get_tool(decision.action)
        if tool is None:
            logger.warning(f"Unknown action on step {step}: {decision.action}")
            valid = ", ".join(self._tools.names())
            state.scratchpad.system(f'Unknown action "{decision.action}". Valid tools: {valid}')
            return False

        state.scratchpad.thought(decision.thought)
        state.scratchpad.action(decision.action, decision.action_input)
        state.tool_calls += 1
        await reporter.report(
            step,
            AgentStatus.TOOL,
            f"Using {decision.action}",
            state.scratchpad,
            decision.action,
        )
        logger.info(f"Executing {decision.action}...")

        try:
            outcome = await asyncio.wait_for(
                tool.invoke(decision.action_input, state.context),
                self._tool_timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.error(f"Tool {decision.action} timed out after {self._tool_timeout_ms} ms")
            state.scratchpad.observation(
                f"Tool Execution Error - timed out after {self._tool_timeout_ms} ms"
            )
            return False
        except Exception as e:
            logger.error(f"Tool execution failed: {decision.action} - {e}")
            state.scratchpad.observation(f"Tool Execution Error - {e}")
            return False

        state.last_tool_used = decision.action
        state.last_tool_result = outcome

        found, artifacts = extract_artifacts(outcome)
        if found:
            state.updated_artifacts = artifacts
            state.artifacts_updated = True

        state.scratchpad.observation(
            normalize_outcome(outcome, self._observation_max_chars)
        )

        if decision.action == CHAIN_TASK:
            self._finish_chained(state, outcome)
            return True
        return False

    @staticmethod
    def _finish_chained(state: _RunState, outcome: ToolOutcome) -> None:
        message = ""
        instruction = None
        if isinstance(outcome, dict):
            message = str(outcome.get("message") or "")
            instruction = outcome.get("chainedInstruction")
        elif isinstance(outcome, str):
            message = outcome
        state.final_answer = message or TIMEOUT_ANSWER
        state.chained_instruction = str(instruction) if instruction else state.request
        logger.info(f"Task chained: {state.chained_instruction}")

    @staticmethod
    def _chain_on_timeout(state: _RunState, elapsed_ms: float) -> None:
        instruction = f"Continue working on the user's request: {state.request}"
        logger.info(f"Loop timeout after {elapsed_ms:.0f} ms, chaining remaining work")
        state.scratchpad.system("Time budget reached. Continuing in a follow-up run.")
        state.final_answer = TIMEOUT_ANSWER
        state.chained_instruction = instruction
        state.last_tool_used = CHAIN_TASK
        state.last_tool_result = {
            "success": True,
            "message": TIMEOUT_ANSWER,
            "chainedInstruction": instruction,
        }


_default_executor: AgentExecutor | None = None


def get_executor() -> AgentExecutor:
    """Get or create the default executor instance."""
    global _default_executor
    if _default_executor is None:
        from elf_agent.llm.content import LLMContentSource
        from elf_agent.tools import create_default_registry

        content_source = LLMContentSource()
        _default_executor = AgentExecutor(
            content_source,
            create_default_registry(content_source=content_source),
        )
    return _default_executor


async def run(
    user_id: str,
    scenario: str,
    prompt: str,
    context_info: str,
    max_steps: int | None = None,
    timeout_ms: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> AgentResult:
    """Run the default executor once. See AgentExecutor.run."""
    return await get_executor().run(
        user_id,
        scenario,
        prompt,
        context_info,
        max_steps=max_steps,
        timeout_ms=timeout_ms,
        on_progress=on_progress,
    )
