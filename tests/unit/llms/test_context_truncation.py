"""Tests for fitting conversations into a token budget.

This module covers the backward eviction walk, the system message exemption
and the properties every trimmed conversation must hold.
"""

from collections.abc import Sequence
from typing import Any

import pytest

from tests.helpers.test_data import call, message, tool_result, weather_tool
from unify_adapter.core.errors import BudgetExhaustionError
from unify_adapter.llms.unify.models import Message, ToolDeclaration
from unify_adapter.llms.utils import (
    estimate_message_tokens,
    estimate_tools_tokens,
    limit_messages_to_budget,
    trim_messages,
)


def _has_valid_pairing(messages: Sequence[Message]) -> bool:
    """Every tool response follows a call and every call has a response."""
    for i, msg in enumerate(messages):
        if msg.is_tool_response:
            j = i - 1
            while j >= 0 and (messages[j].is_tool_response or messages[j].role == "system"):
                j -= 1
            if j < 0 or not messages[j].requests_tool:
                return False
        if msg.requests_tool:
            j = i + 1
            while j < len(messages) and messages[j].role == "system":
                j += 1
            if j >= len(messages) or not messages[j].is_tool_response:
                return False
    return True


def _is_subsequence(subset: Sequence[Message], full: Sequence[Message]) -> bool:
    remaining = iter(full)
    return all(any(item is candidate for candidate in remaining) for item in subset)


class TestTrimScenarios:
    """Tests for concrete trimming scenarios."""

    def test_drops_long_user_message_keeps_system_and_reply(self) -> None:
        system = Message(role="system", content="You are helpful")
        question = message("user", 900)
        reply = Message(role="assistant", content="short reply")

        result = trim_messages([system, question, reply], [], 500)

        assert result == [system, reply]

    def test_empty_conversation(self) -> None:
        assert trim_messages([], [], 500) == []

    def test_everything_fits(self) -> None:
        messages = [message("system", 10), message("user", 20), message("assistant", 30)]
        assert trim_messages(messages, [], 60) == messages

    def test_single_oversized_message_is_dropped_whole(self) -> None:
        big = message("user", 600)
        assert trim_messages([big], [], 500) == []

    def test_message_text_is_never_cut(self) -> None:
        messages = [message("user", 300), message("user", 300)]
        result = trim_messages(messages, [], 450)
        assert result == [messages[1]]
        assert result[0].content == messages[1].content

    def test_walk_stops_at_first_message_that_does_not_fit(self) -> None:
        """An older message that would fit is still dropped once the walk stops."""
        messages = [message("user", 10), message("user", 400), message("user", 200)]
        assert trim_messages(messages, [], 500) == [messages[2]]

    def test_exact_budget_fits(self) -> None:
        messages = [message("user", 250), message("assistant", 250)]
        assert trim_messages(messages, [], 500) == messages

    def test_tools_reduce_the_budget(self) -> None:
        tools = [weather_tool()]
        tool_tokens = estimate_tools_tokens(tools)
        messages = [message("user", 100), message("assistant", 100)]

        assert trim_messages(messages, tools, tool_tokens + 200) == messages
        assert trim_messages(messages, tools, tool_tokens + 199) == [messages[1]]

    def test_no_system_message(self) -> None:
        messages = [message("user", 300), message("assistant", 100), message("user", 100)]
        assert trim_messages(messages, [], 250) == messages[1:]


class TestSystemMessage:
    """Tests for the first system message exemption."""

    def test_system_message_survives_when_everything_else_is_dropped(self) -> None:
        messages = [message("system", 50), message("user", 500)]
        assert trim_messages(messages, [], 100) == [messages[0]]

    def test_system_message_keeps_its_position(self) -> None:
        messages = [message("user", 300), message("system", 10), message("user", 50)]
        assert trim_messages(messages, [], 100) == [messages[1], messages[2]]

    def test_only_first_system_message_is_exempt(self) -> None:
        first = message("system", 10)
        second = message("system", 300)
        latest = message("user", 100)
        messages = [first, message("user", 300), second, latest]

        assert trim_messages(messages, [], 300) == [first, latest]
        assert trim_messages(messages, [], 450) == [first, second, latest]

    def test_system_message_larger_than_budget_raises(self) -> None:
        messages = [message("system", 600), message("user", 10)]

        with pytest.raises(BudgetExhaustionError) as exc_info:
            trim_messages(messages, [], 500)

        assert exc_info.value.required_tokens == 600
        assert exc_info.value.budget == 500


class TestBudgetExhaustion:
    """Tests for budgets that the tool declarations use up."""

    def test_tools_exceed_budget(self) -> None:
        tools = [weather_tool()]
        tool_tokens = estimate_tools_tokens(tools)

        with pytest.raises(BudgetExhaustionError) as exc_info:
            trim_messages([message("user", 10)], tools, tool_tokens - 1)

        assert exc_info.value.tool_tokens == tool_tokens
        assert exc_info.value.budget == tool_tokens - 1

    def test_tools_equal_to_budget_leave_no_room(self) -> None:
        tools = [weather_tool()]
        with pytest.raises(BudgetExhaustionError):
            trim_messages([message("user", 10)], tools, estimate_tools_tokens(tools))

    def test_zero_budget(self, captured_logs: list[dict[str, Any]]) -> None:
        with pytest.raises(BudgetExhaustionError, match="Token budget is 0") as exc_info:
            trim_messages([message("user", 10)], [], 0)

        assert "Tool declarations" not in str(exc_info.value)
        events = [log for log in captured_logs if log["event"] == "budget_exhausted"]
        assert events[0]["reason"] == "no_budget"

    def test_exhaustion_is_logged(self, captured_logs: list[dict[str, Any]]) -> None:
        with pytest.raises(BudgetExhaustionError):
            trim_messages([], [weather_tool()], 1)

        events = [log for log in captured_logs if log["event"] == "budget_exhausted"]
        assert len(events) == 1
        assert events[0]["reason"] == "tool_declarations_exceed_budget"


class TestTrimResult:
    """Tests for the detailed trimming outcome."""

    def test_reports_dropped_indices_and_tokens(self) -> None:
        messages = [message("system", 10), message("user", 400), message("user", 50)]
        tools = [weather_tool()]
        tool_tokens = estimate_tools_tokens(tools)

        result = limit_messages_to_budget(messages, tools, tool_tokens + 100)

        assert result.messages == [messages[0], messages[2]]
        assert result.dropped_indices == (1,)
        assert result.dropped_count == 1
        assert result.tool_tokens == tool_tokens
        assert result.message_tokens == 60
        assert result.total_tokens == tool_tokens + 60

    def test_truncation_is_logged(self, captured_logs: list[dict[str, Any]]) -> None:
        messages = [message("user", 400), message("user", 50)]

        limit_messages_to_budget(messages, [], 100)

        events = [log for log in captured_logs if log["event"] == "context_truncated"]
        assert len(events) == 1
        assert events[0]["messages_removed"] == 1
        assert events[0]["category"] == "context_management"

    def test_nothing_logged_when_nothing_dropped(
        self, captured_logs: list[dict[str, Any]]
    ) -> None:
        limit_messages_to_budget([message("user", 10)], [], 100)
        assert not [log for log in captured_logs if log["event"] == "context_truncated"]

    def test_inputs_are_not_modified(self) -> None:
        messages = [
            message("system", 10),
            message("user", 400),
            call(20, scope={"agent": "a"}),
            tool_result(20),
        ]
        tools = [weather_tool()]
        before = [m.model_dump() for m in messages]
        tools_before = [t.model_dump() for t in tools]

        limit_messages_to_budget(messages, tools, estimate_tools_tokens(tools) + 100)

        assert [m.model_dump() for m in messages] == before
        assert [t.model_dump() for t in tools] == tools_before
        assert len(messages) == 4


def _tool_calls(*call_ids: str | None) -> Message:
    calls = []
    for call_id in call_ids:
        entry: dict[str, Any] = {
            "type": "function",
            "function": {"name": "fn", "arguments": "{}"},
        }
        if call_id is not None:
            entry["id"] = call_id
        calls.append(entry)
    return Message.model_validate({"role": "assistant", "tool_calls": calls})


def _answer(call_id: str | None = None) -> Message:
    data: dict[str, Any] = {"role": "tool", "content": "ok"}
    if call_id is not None:
        data["tool_call_id"] = call_id
    return Message.model_validate(data)


class TestToolCallMatching:
    """Tests for pairing OpenAI tool calls with their answers."""

    def test_every_call_answered_is_kept(self) -> None:
        messages = [
            message("user", 10),
            _tool_calls("a", "b"),
            _answer("b"),
            _answer("a"),
        ]
        assert trim_messages(messages, [], 1000) == messages

    def test_partly_answered_calls_are_dropped(
        self, captured_logs: list[dict[str, Any]]
    ) -> None:
        messages = [
            message("user", 10),
            _tool_calls("a", "b"),
            _answer("a"),
            message("user", 10),
        ]

        assert trim_messages(messages, [], 1000) == [messages[0], messages[3]]
        events = [
            log
            for log in captured_logs
            if log["event"] == "unpaired_tool_messages_dropped"
        ]
        assert events[0]["indices"] == [1, 2]

    def test_answer_to_unknown_call_is_dropped(self) -> None:
        messages = [
            message("user", 10),
            _tool_calls("a"),
            _answer("a"),
            _answer("zzz"),
        ]
        assert trim_messages(messages, [], 1000) == messages[:3]

    def test_calls_without_ids_matched_on_count(self) -> None:
        answered = [_tool_calls(None, None), _answer(), _answer()]
        unanswered = [_tool_calls(None, None), _answer()]

        assert trim_messages(answered, [], 1000) == answered
        assert trim_messages(unanswered, [], 1000) == []

    def test_trimming_partial_calls_is_idempotent(self) -> None:
        messages = [_tool_calls("a", "b"), _answer("a"), _tool_calls("c"), _answer("c")]

        once = trim_messages(messages, [], 1000)

        assert once == messages[2:]
        assert trim_messages(once, [], 1000) == once


def _conversations() -> list[list[Message]]:
    return [
        [],
        [message("user", 40)],
        [
            message("system", 15),
            message("user", 40),
            message("assistant", 60),
            message("user", 25),
            message("assistant", 80),
            message("user", 10),
        ],
        [
            message("system", 20),
            message("user", 30),
            call(25),
            tool_result(70),
            message("assistant", 40),
            message("user", 15),
            call(10),
            tool_result(15),
            tool_result(15, role="function"),
            message("assistant", 35),
        ],
        [
            message("user", 30),
            tool_result(20),
            message("system", 12),
            message("user", 45),
            call(30),
            message("user", 10),
            message("system", 50),
            message("assistant", 20),
            call(15),
        ],
    ]


def _extra_room() -> list[int]:
    return [0, 1, 24, 60, 120, 250, 10_000]


def _cases() -> list[tuple[list[Message], list[ToolDeclaration], int]]:
    cases = []
    for conversation in _conversations():
        for tools in ([], [weather_tool()]):
            system = next((m for m in conversation if m.role == "system"), None)
            floor = estimate_tools_tokens(tools) + (
                estimate_message_tokens(system) if system is not None else 0
            )
            for extra in _extra_room():
                cases.append((conversation, tools, floor + max(extra, 1)))
    return cases


@pytest.mark.parametrize(("messages", "tools", "budget"), _cases())
class TestTrimProperties:
    """Properties that hold for every trimmed conversation."""

    def test_budget_adherence(
        self, messages: list[Message], tools: list[ToolDeclaration], budget: int
    ) -> None:
        result = trim_messages(messages, tools, budget)
        used = sum(estimate_message_tokens(m) for m in result)
        assert used + estimate_tools_tokens(tools) <= budget

    def test_order_preservation(
        self, messages: list[Message], tools: list[ToolDeclaration], budget: int
    ) -> None:
        result = trim_messages(messages, tools, budget)
        assert _is_subsequence(result, messages)

    def test_pairing_integrity(
        self, messages: list[Message], tools: list[ToolDeclaration], budget: int
    ) -> None:
        assert _has_valid_pairing(trim_messages(messages, tools, budget))

    def test_system_message_priority(
        self, messages: list[Message], tools: list[ToolDeclaration], budget: int
    ) -> None:
        system = next((m for m in messages if m.role == "system"), None)
        result = trim_messages(messages, tools, budget)
        if system is not None:
            assert any(m is system for m in result)

    def test_idempotence(
        self, messages: list[Message], tools: list[ToolDeclaration], budget: int
    ) -> None:
        once = trim_messages(messages, tools, budget)
        assert trim_messages(once, tools, budget) == once

    def test_determinism(
        self, messages: list[Message], tools: list[ToolDeclaration], budget: int
    ) -> None:
        first = trim_messages(messages, tools, budget)
        copies = [m.model_copy(deep=True) for m in messages]
        second = trim_messages(copies, tools, budget)
        assert [m.model_dump_json() for m in first] == [
            m.model_dump_json() for m in second
        ]
