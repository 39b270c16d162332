"""
Progress reporter and run state tests
"""

import asyncio

from elf_agent.agent.progress import ProgressReporter
from elf_agent.agent.state import (
    AgentResult,
    AgentStatus,
    EntryKind,
    Scratchpad,
)


class TestProgressReporter:
    """Best-effort delivery to the sink"""

    async def test_no_sink_is_noop(self):
        reporter = ProgressReporter(None, max_steps=5)
        await reporter.report(1, AgentStatus.STARTING, "Starting", Scratchpad())
        await reporter.thinking(1, "text", Scratchpad())

    async def test_snapshot_fields(self):
        events = []
        pad = Scratchpad()
        pad.thought("checking")
        reporter = ProgressReporter(events.append, max_steps=5)

        await reporter.report(2, AgentStatus.TOOL, "Using find_recipe", pad, "find_recipe")

        event = events[0]
        assert (event.step, event.max_steps, event.status) == (2, 5, AgentStatus.TOOL)
        assert event.transcript_so_far == ["Thought: checking"]
        assert event.last_tool_used == "find_recipe"

    async def test_snapshot_is_detached(self):
        events = []
        pad = Scratchpad()
        reporter = ProgressReporter(events.append, max_steps=5)

        await reporter.report(1, AgentStatus.STARTING, "", pad)
        pad.thought("later")

        assert events[0].transcript_so_far == []

    async def test_async_sink_awaited(self):
        events = []

        async def sink(progress):
            events.append(progress.status)

        await ProgressReporter(sink, max_steps=1).report(
            1, AgentStatus.DONE, "done", Scratchpad()
        )
        assert events == [AgentStatus.DONE]

    async def test_sink_errors_swallowed(self):
        async def sink(progress):
            raise ConnectionResetError("client went away")

        reporter = ProgressReporter(sink, max_steps=1)
        await reporter.report(1, AgentStatus.DONE, "done", Scratchpad())

    async def test_stalled_sink_times_out(self):
        delivered = []

        async def sink(progress):
            delivered.append(progress.status)
            await asyncio.Event().wait()

        reporter = ProgressReporter(sink, max_steps=1, timeout_ms=20)

        await asyncio.wait_for(
            reporter.report(1, AgentStatus.STARTING, "Starting", Scratchpad()), 2
        )
        await asyncio.wait_for(reporter.report(1, AgentStatus.DONE, "done", Scratchpad()), 2)

        assert delivered == [AgentStatus.STARTING, AgentStatus.DONE]

    async def test_thinking_throttled(self):
        events = []
        reporter = ProgressReporter(events.append, max_steps=3, interval_ms=60_000)

        for text in ("a", "ab", "abc"):
            await reporter.thinking(1, text, Scratchpad())

        assert len(events) == 1
        assert events[0].status is AgentStatus.THINKING
        assert events[0].message == "a"

    async def test_thinking_unthrottled_and_tail(self):
        events = []
        reporter = ProgressReporter(events.append, max_steps=3, interval_ms=0, tail_chars=4)

        await reporter.thinking(1, "abcdefgh", Scratchpad())
        await reporter.thinking(1, "abcdefghij", Scratchpad())

        assert [e.message for e in events] == ["efgh", "ghij"]


class TestScratchpad:
    """Transcript formatting"""

    def test_line_formats(self):
        pad = Scratchpad()
        pad.thought("I need a recipe")
        pad.action("find_recipe", "cookies")
        pad.observation("found")
        pad.critic("Too sweet")
        pad.system("Invalid JSON returned.")
        pad.final_answer("Bake them.")

        assert pad.lines() == [
            "Thought: I need a recipe",
            'Action: find_recipe("cookies")',
            "Observation: found",
            "Critic: Your answer was rejected. Reason: Too sweet. Please fix this and try again.",
            "System: Invalid JSON returned.",
            "Final Answer: Bake them.",
        ]
        assert pad.render() == "\n".join(pad.lines())
        assert pad.count(EntryKind.OBSERVATION) == 1
        assert len(pad) == 6

    def test_entries_are_a_copy(self):
        pad = Scratchpad()
        pad.thought("x")
        entries = pad.entries
        pad.thought("y")
        assert len(entries) == 1


class TestAgentResult:
    """Serialized result"""

    def test_to_dict_keys(self):
        result = AgentResult(
            final_answer="ok",
            steps=["Final Answer: ok"],
            last_tool_used="chain_task",
            chained_instruction="continue",
        )
        assert result.to_dict() == {
            "finalAnswer": "ok",
            "steps": ["Final Answer: ok"],
            "artifactsUpdated": False,
            "updatedArtifacts": None,
            "lastToolUsed": "chain_task",
            "lastToolResult": None,
            "chainedInstruction": "continue",
        }
