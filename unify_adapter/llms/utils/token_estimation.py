"""Token estimation utilities for context window management."""

import json
import math
from collections.abc import Iterable
from typing import Any

from unify_adapter.llms.unify.models import Message, ToolDeclaration


# ~3 characters per token for English text, rounded up
CHARS_PER_TOKEN = 3

# Role tag and message framing
MESSAGE_OVERHEAD_TOKENS = 2


def estimate_text(text: str | None) -> int:
    """Estimate token count for a piece of text.

    This is a conservative estimate - actual counts are usually lower. The
    same heuristic applies to every model.

    Args:
        text: Text to estimate, or None

    Returns:
        Estimated token count; 0 for empty or missing text
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def estimate_message_tokens(message: Message) -> int:
    """Estimate tokens for one message.

    Counts the content text, the function call name and arguments, and any
    OpenAI-style ``tool_calls``. A function call's ``scope`` never counts.
    """
    total = MESSAGE_OVERHEAD_TOKENS
    total += estimate_text(message.content)

    if message.function_call is not None:
        total += estimate_text(message.function_call.name)
        total += estimate_text(message.function_call.arguments)

    for call in message.requested_tool_calls:
        total += estimate_text(_dumps(call))

    return total


def estimate_messages_tokens(messages: Iterable[Message]) -> int:
    return sum(estimate_message_tokens(m) for m in messages)


def estimate_tool_tokens(tool: ToolDeclaration) -> int:
    """Estimate tokens for a tool declaration from its JSON serialization."""
    return estimate_text(_dumps(tool.to_payload()))


def estimate_tools_tokens(tools: Iterable[ToolDeclaration] | None) -> int:
    if not tools:
        return 0
    return sum(estimate_tool_tokens(t) for t in tools)
