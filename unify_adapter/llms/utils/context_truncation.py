"""Context window truncation utilities."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from unify_adapter.core.errors import BudgetExhaustionError
from unify_adapter.core.logging import get_logger
from unify_adapter.llms.unify.models import Message, ToolDeclaration

from .token_estimation import estimate_message_tokens, estimate_tools_tokens


logger = get_logger(__name__)


@dataclass(frozen=True)
class TrimResult:
    """Outcome of fitting a conversation into a token budget."""

    messages: list[Message]
    budget: int
    tool_tokens: int
    message_tokens: int
    dropped_indices: tuple[int, ...] = field(default_factory=tuple)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped_indices)

    @property
    def total_tokens(self) -> int:
        return self.tool_tokens + self.message_tokens


def _match_responses(
    call: Message, responses: list[int], messages: Sequence[Message]
) -> tuple[list[int], list[int]] | None:
    """Match the tool responses following ``call`` against what it asked for.

    A legacy ``function_call`` is answered by any following response. OpenAI
    ``tool_calls`` are matched on ``tool_call_id`` when every call carries an
    ``id``, otherwise on count.

    Returns:
        Tuple of (matched, stray) response indices, or None if some call is
        left unanswered
    """
    calls = call.requested_tool_calls
    if not calls:
        return (responses, []) if responses else None

    ids = [c.get("id") if isinstance(c, dict) else None for c in calls]
    if any(not isinstance(call_id, str) for call_id in ids):
        return (responses, []) if len(responses) >= len(calls) else None

    matched = [r for r in responses if messages[r].responds_to in ids]
    if {messages[r].responds_to for r in matched} != set(ids):
        return None
    stray = [r for r in responses if r not in matched]
    return matched, stray


def _group_units(
    messages: Sequence[Message], pinned: int | None
) -> tuple[list[list[int]], list[int]]:
    """Group message indices into units that are kept or dropped together.

    An assistant message that requests a tool forms one unit with the tool
    responses that answer it. A call left partly unanswered is an orphan
    together with its responses, as is any response without a call. The
    pinned index is left out of every unit.

    Returns:
        Tuple of (units in chronological order, orphan indices)
    """
    units: list[list[int]] = []
    orphans: list[int] = []
    count = len(messages)

    i = 0
    while i < count:
        if i == pinned:
            i += 1
            continue

        message = messages[i]
        if message.requests_tool:
            responses: list[int] = []
            j = i + 1
            while j < count and (j == pinned or messages[j].is_tool_response):
                if j != pinned:
                    responses.append(j)
                j += 1
            matched = _match_responses(message, responses, messages)
            if matched is None:
                orphans.extend([i, *responses])
            else:
                answered, stray = matched
                units.append([i, *answered])
                orphans.extend(stray)
            i = j
        elif message.is_tool_response:
            orphans.append(i)
            i += 1
        else:
            units.append([i])
            i += 1

    return units, sorted(orphans)


def limit_messages_to_budget(
    messages: Sequence[Message],
    tools: Sequence[ToolDeclaration] | None,
    budget: int,
) -> TrimResult:
    """Select the most recent messages that fit within a token budget.

    Strategy:
    1. Reserve the cost of every tool declaration (tools are never dropped)
    2. Keep the first system message at its position, whatever else goes
    3. Walk back from the newest message, keeping whole units while they fit
    4. Stop at the first unit that does not fit; everything older is dropped

    A tool-requesting assistant message and its tool responses are one unit,
    so a kept conversation never holds half of a call. Messages are never cut
    mid-text and the inputs are not modified.

    Args:
        messages: Conversation, oldest first
        tools: Tool declarations sent with the conversation
        budget: Token budget for messages and tools together

    Returns:
        TrimResult with the kept messages in chronological order

    Raises:
        BudgetExhaustionError: If the tools, or the tools plus the first system
            message, leave no room within the budget
    """
    tool_tokens = estimate_tools_tokens(tools)
    remaining = budget - tool_tokens

    if budget <= 0:
        logger.warning(
            "budget_exhausted",
            reason="no_budget",
            budget=budget,
            tool_tokens=tool_tokens,
            category="context_management",
        )
        raise BudgetExhaustionError(
            f"Token budget is {budget}, leaving no room for messages or tools; the reply reserve may exceed the context window",
            budget=budget,
            tool_tokens=tool_tokens,
            required_tokens=tool_tokens,
        )

    if remaining <= 0:
        logger.warning(
            "budget_exhausted",
            reason="tool_declarations_exceed_budget",
            budget=budget,
            tool_tokens=tool_tokens,
            category="context_management",
        )
        raise BudgetExhaustionError(
            f"Tool declarations need {tool_tokens} tokens, leaving nothing of the {budget} token budget",
            budget=budget,
            tool_tokens=tool_tokens,
            required_tokens=tool_tokens,
        )

    if not messages:
        return TrimResult(
            messages=[], budget=budget, tool_tokens=tool_tokens, message_tokens=0
        )

    costs = [estimate_message_tokens(m) for m in messages]

    pinned = next(
        (i for i, m in enumerate(messages) if m.role == "system"),
        None,
    )
    used = 0
    if pinned is not None:
        if costs[pinned] > remaining:
            logger.warning(
                "budget_exhausted",
                reason="system_message_exceeds_budget",
                budget=budget,
                tool_tokens=tool_tokens,
                system_tokens=costs[pinned],
                category="context_management",
            )
            raise BudgetExhaustionError(
                f"System message needs {costs[pinned]} tokens but only {remaining} remain after tool declarations",
                budget=budget,
                tool_tokens=tool_tokens,
                required_tokens=costs[pinned],
            )
        used = costs[pinned]

    units, orphans = _group_units(messages, pinned)
    if orphans:
        logger.warning(
            "unpaired_tool_messages_dropped",
            indices=orphans,
            category="context_management",
        )

    kept: list[int] = [] if pinned is None else [pinned]
    for unit in reversed(units):
        unit_cost = sum(costs[i] for i in unit)
        if used + unit_cost > remaining:
            break
        kept.extend(unit)
        used += unit_cost

    kept.sort()
    kept_set = set(kept)
    dropped = tuple(i for i in range(len(messages)) if i not in kept_set)

    if dropped:
        logger.info(
            "context_truncated",
            budget=budget,
            tool_tokens=tool_tokens,
            message_tokens=used,
            original_messages=len(messages),
            messages_kept=len(kept),
            messages_removed=len(dropped),
            category="context_management",
        )

    return TrimResult(
        messages=[messages[i] for i in kept],
        budget=budget,
        tool_tokens=tool_tokens,
        message_tokens=used,
        dropped_indices=dropped,
    )


def trim_messages(
    messages: Sequence[Message],
    tools: Sequence[ToolDeclaration] | None,
    budget: int,
) -> list[Message]:
    """Return the longest valid suffix of the conversation that fits the budget.

    See :func:`limit_messages_to_budget` for the selection rules.
    """
    return limit_messages_to_budget(messages, tools, budget).messages
