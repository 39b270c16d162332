"""
Decision parser tests
"""

import pytest

from elf_agent.agent.decision import (
    INVALID_JSON,
    MISSING_FIELDS,
    FinalAnswer,
    ParseFailure,
    ToolCall,
    extract_json_object,
    parse_decision,
)


class TestParseDecision:
    """Raw model output to Decision"""

    def test_tool_call(self):
        decision = parse_decision(
            '{"thought": "need data", "action": "find_recipe", "action_input": "cookies"}'
        )
        assert decision == ToolCall(thought="need data", action="find_recipe", action_input="cookies")

    def test_final_answer(self):
        decision = parse_decision('{"thought": "done", "final_answer": "Bake cookies."}')
        assert decision == FinalAnswer(thought="done", answer="Bake cookies.")

    def test_final_answer_wins_over_action(self):
        decision = parse_decision(
            '{"thought": "t", "action": "find_recipe", "final_answer": "Here it is."}'
        )
        assert isinstance(decision, FinalAnswer)

    def test_markdown_fences_stripped(self):
        raw = '```json\n{"thought": "t", "final_answer": "Hi"}\n```'
        assert parse_decision(raw) == FinalAnswer(thought="t", answer="Hi")

    def test_preamble_and_postamble(self):
        raw = 'Sure, here you go:\n{"thought": "t", "action": "x", "action_input": "y"}\nHope that helps!'
        decision = parse_decision(raw)
        assert isinstance(decision, ToolCall)
        assert decision.action == "x"

    def test_literal_newlines_inside_strings(self):
        raw = '{"thought": "t", "final_answer": "Line one\nLine two"}'
        decision = parse_decision(raw)
        assert decision == FinalAnswer(thought="t", answer="Line one\nLine two")

    def test_object_action_input_is_stringified(self):
        decision = parse_decision(
            '{"thought": "t", "action": "manage_planner", "action_input": {"action": "list"}}'
        )
        assert decision.action_input == '{"action": "list"}'

    def test_missing_action_input_is_empty(self):
        decision = parse_decision('{"action": "chain_task"}')
        assert decision == ToolCall(thought="", action="chain_task", action_input="")

    @pytest.mark.parametrize(
        "raw",
        ["", "just text", "{not json}", "[1, 2, 3]", '"a string"'],
    )
    def test_invalid_json(self, raw):
        failure = parse_decision(raw)
        assert isinstance(failure, ParseFailure)
        assert failure.diagnostic == INVALID_JSON
        assert failure.raw == raw

    @pytest.mark.parametrize(
        "raw",
        [
            '{"thought": "hmm"}',
            '{"thought": "t", "final_answer": ""}',
            '{"thought": "t", "action": "   "}',
            '{"thought": "t", "action": 42}',
        ],
    )
    def test_missing_fields(self, raw):
        failure = parse_decision(raw)
        assert isinstance(failure, ParseFailure)
        assert failure.diagnostic == MISSING_FIELDS


class TestExtractJsonObject:
    """Best-effort JSON extraction"""

    def test_plain(self):
        assert extract_json_object('{"valid": true}') == {"valid": True}

    def test_embedded(self):
        assert extract_json_object('Verdict: {"valid": false, "reason": "x"} done') == {
            "valid": False,
            "reason": "x",
        }

    def test_nothing(self):
        assert extract_json_object("no braces here") is None
