"""LLM utility modules for token estimation and context management."""

from .context_truncation import TrimResult, limit_messages_to_budget, trim_messages
from .model_limits import (
    DEFAULT_MAX_TOKENS,
    MODEL_CONTEXT_WINDOWS,
    budget_for_model,
    max_tokens_for_model,
)
from .sanitization import sanitize_messages
from .token_estimation import (
    estimate_message_tokens,
    estimate_messages_tokens,
    estimate_text,
    estimate_tool_tokens,
    estimate_tools_tokens,
)


__all__ = [
    "DEFAULT_MAX_TOKENS",
    "MODEL_CONTEXT_WINDOWS",
    "TrimResult",
    "budget_for_model",
    "estimate_message_tokens",
    "estimate_messages_tokens",
    "estimate_text",
    "estimate_tool_tokens",
    "estimate_tools_tokens",
    "limit_messages_to_budget",
    "max_tokens_for_model",
    "sanitize_messages",
    "trim_messages",
]
