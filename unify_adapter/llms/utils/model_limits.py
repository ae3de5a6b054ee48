"""Context window sizes for models served through Unify."""

from collections.abc import Mapping


# Used for models missing from the table; sized for the smallest plausible window
DEFAULT_MAX_TOKENS = 4096

MODEL_CONTEXT_WINDOWS: Mapping[str, int] = {
    # Mistral
    "mistral-7b-instruct-v0.1": 8192,
    "mistral-7b-instruct-v0.2": 32768,
    "mistral-7b-instruct-v0.3": 32768,
    "mixtral-8x7b-instruct-v0.1": 32768,
    "mixtral-8x22b-instruct-v0.1": 65536,
    "mistral-small": 32768,
    "mistral-medium": 32768,
    "mistral-large": 32768,
    # Meta
    "llama-2-7b-chat": 4096,
    "llama-2-13b-chat": 4096,
    "llama-2-70b-chat": 4096,
    "llama-3-8b-chat": 8192,
    "llama-3-70b-chat": 8192,
    "codellama-7b-instruct": 16384,
    "codellama-13b-instruct": 16384,
    "codellama-34b-instruct": 16384,
    "codellama-70b-instruct": 4096,
    # Google
    "gemma-2b-it": 8192,
    "gemma-7b-it": 8192,
    # OpenAI
    "gpt-3.5-turbo": 16385,
    "gpt-4": 8192,
    "gpt-4-turbo": 128000,
    "gpt-4o": 128000,
    # Anthropic
    "claude-3-haiku": 200000,
    "claude-3-sonnet": 200000,
    "claude-3-opus": 200000,
    # Others
    "deepseek-coder-33b-instruct": 16384,
    "yi-34b-chat": 4096,
    "qwen-2-72b-instruct": 32768,
}


def max_tokens_for_model(
    model: str, overrides: Mapping[str, int] | None = None
) -> int:
    """Get the context window size for a model.

    Lookup is by exact model name (the part before ``@`` in a Unify model
    identifier). Configured overrides win over the built-in table.

    Args:
        model: Model name, without the provider suffix
        overrides: Extra or corrected context window sizes

    Returns:
        Context window in tokens, or DEFAULT_MAX_TOKENS for unknown models
    """
    if overrides and model in overrides:
        return overrides[model]
    return MODEL_CONTEXT_WINDOWS.get(model, DEFAULT_MAX_TOKENS)


def budget_for_model(
    model: str,
    reserved_output_tokens: int,
    overrides: Mapping[str, int] | None = None,
) -> int:
    """Tokens available for messages and tools once the reply reserve is held back."""
    return max(0, max_tokens_for_model(model, overrides) - reserved_output_tokens)
