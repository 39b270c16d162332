"""Best-effort progress notifications for callers observing a run."""

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable

from config.settings import settings
from elf_agent.agent.state import AgentProgress, AgentStatus, Scratchpad

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AgentProgress], Awaitable[None] | None]


class ProgressReporter:
    """
    Pushes AgentProgress snapshots to an optional caller-supplied sink.

    Errors raised by the sink are logged and dropped; they never reach
    the loop. An async sink gets at most timeout_ms per event.
    """

    def __init__(
        self,
        callback: ProgressCallback | None,
        max_steps: int,
        interval_ms: int | None = None,
        tail_chars: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._callback = callback
        self._max_steps = max_steps
        self._interval = (
            interval_ms if interval_ms is not None else settings.agent_progress_interval_ms
        ) / 1000
        self._tail_chars = (
            tail_chars if tail_chars is not None else settings.agent_progress_tail_chars
        )
        self._timeout = (
            timeout_ms if timeout_ms is not None else settings.agent_progress_timeout_ms
        ) / 1000
        self._last_thinking: float | None = None

    async def report(
        self,
        step: int,
        status: AgentStatus,
        message: str,
        scratchpad: Scratchpad,
        last_tool_used: str | None = None,
    ) -> None:
        if self._callback is None:
            return

        progress = AgentProgress(
            step=step,
            max_steps=self._max_steps,
            status=status,
            message=message,
            transcript_so_far=scratchpad.lines(),
            last_tool_used=last_tool_used,
        )
        try:
            outcome = self._callback(progress)
            if inspect.isawaitable(outcome):
                await asyncio.wait_for(outcome, self._timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Progress sink timed out after {self._timeout * 1000:.0f} ms ({status.value})"
            )
        except Exception as e:
            logger.warning(f"Progress sink failed ({status.value}): {e}")

    async def thinking(
        self,
        step: int,
        buffered: str,
        scratchpad: Scratchpad,
        last_tool_used: str | None = None,
    ) -> None:
        """Report the tail of the streamed text, at most once per interval."""
        if self._callback is None:
            return

        now = time.monotonic()
        if self._last_thinking is not None and now - self._last_thinking < self._interval:
            return
        self._last_thinking = now

        await self.report(
            step,
            AgentStatus.THINKING,
            buffered[-self._tail_chars :] if self._tail_chars else "",
            scratchpad,
            last_tool_used,
        )
