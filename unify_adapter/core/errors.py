"""Core error types for the adapter."""


class UnifyAdapterError(Exception):
    """Base exception for all adapter errors."""

    def __init__(self, message: str):
        """Initialize with a message.

        Args:
            message: The error message
        """
        super().__init__(message)
        self.message = message


class ConfigurationError(UnifyAdapterError):
    """Raised when configuration is missing or invalid.

    Always raised at construction or load time, never deferred to a request.
    """


class BudgetExhaustionError(UnifyAdapterError):
    """Raised when the token budget leaves no room for the conversation."""

    def __init__(
        self,
        message: str,
        budget: int,
        tool_tokens: int = 0,
        required_tokens: int | None = None,
    ):
        """Initialize with the budget figures that could not be satisfied.

        Args:
            message: The error message
            budget: Token budget available for messages and tools
            tool_tokens: Estimated cost of the tool declarations
            required_tokens: Tokens needed by the content that did not fit
        """
        super().__init__(message)
        self.budget = budget
        self.tool_tokens = tool_tokens
        self.required_tokens = required_tokens


class UpstreamError(UnifyAdapterError):
    """Raised when the upstream inference request fails.

    Carries a human-readable cause only; the transport exception is not
    attached.
    """

    def __init__(self, message: str, status_code: int | None = None):
        """Initialize with a message and optional HTTP status.

        Args:
            message: The error message
            status_code: Upstream HTTP status code, when one was received
        """
        super().__init__(message)
        self.status_code = status_code
