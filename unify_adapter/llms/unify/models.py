"""
Pydantic models for requests forwarded to the Unify inference API.

Every model keeps a fixed set of recognized fields and allows extra keys, so
fields the adapter does not interpret are passed through to the upstream
payload unchanged.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


Role = Literal["system", "user", "assistant", "tool", "function"]

# Roles whose messages answer a preceding assistant function call
TOOL_RESPONSE_ROLES = frozenset({"tool", "function"})


class FunctionCall(BaseModel):
    """A function call requested by the assistant."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Name of the function to call.")
    arguments: str = Field(
        default="", description="JSON-encoded arguments for the call."
    )
    scope: Any | None = Field(
        default=None,
        description="Internal annotation; stripped before the request leaves the process.",
    )


class Message(BaseModel):
    """A single role-tagged conversation message."""

    model_config = ConfigDict(extra="allow")

    role: Role = Field(..., description="The role of the message author.")
    content: str | None = Field(default=None, description="The message text.")
    function_call: FunctionCall | None = Field(
        default=None, description="Function call requested by the assistant."
    )

    @property
    def requested_tool_calls(self) -> list[Any]:
        """OpenAI-style ``tool_calls`` carried as a pass-through field."""
        calls = (self.model_extra or {}).get("tool_calls")
        return calls if isinstance(calls, list) else []

    @property
    def requests_tool(self) -> bool:
        """True for assistant messages that ask for a tool to be run."""
        return self.role == "assistant" and (
            self.function_call is not None or bool(self.requested_tool_calls)
        )

    @property
    def is_tool_response(self) -> bool:
        return self.role in TOOL_RESPONSE_ROLES

    @property
    def responds_to(self) -> str | None:
        """The ``tool_call_id`` this tool response answers, if it names one."""
        call_id = (self.model_extra or {}).get("tool_call_id")
        return call_id if isinstance(call_id, str) else None

    def to_payload(self) -> dict[str, Any]:
        """Serialize exactly the fields the caller supplied."""
        return self.model_dump(mode="json", exclude_unset=True)


class FunctionDefinition(BaseModel):
    """Declaration of a callable function."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="The function name.")
    description: str | None = Field(
        default=None, description="What the function does."
    )
    parameters: dict[str, Any] | None = Field(
        default=None, description="JSON schema for the function arguments."
    )


class ToolDeclaration(BaseModel):
    """A tool the model may invoke."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(default="function", description="The tool type.")
    function: FunctionDefinition

    @property
    def name(self) -> str:
        return self.function.name

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


class AdapterRequest(BaseModel):
    """Inbound chat request.

    ``model``, ``tools`` and ``messages`` are interpreted by the adapter; any
    other key (``temperature``, ``max_tokens``...) is forwarded as-is.
    """

    model_config = ConfigDict(extra="allow")

    model: str | None = Field(
        default=None, description="Model identifier in <model>@<provider> form."
    )
    tools: list[ToolDeclaration] | None = Field(
        default=None, description="Tools the model may call."
    )
    messages: list[Message] = Field(
        default_factory=list, description="The conversation, oldest first."
    )

    @field_validator("messages", mode="before")
    @classmethod
    def null_messages_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def passthrough_fields(self) -> dict[str, Any]:
        """Fields not interpreted by the adapter, in their original form."""
        return self.model_dump(
            mode="json",
            exclude={"model", "tools", "messages"},
            exclude_unset=True,
        )


def parse_model_identifier(identifier: str) -> tuple[str, str | None]:
    """Split ``"<model>@<provider>"`` into its parts.

    Returns:
        Tuple of (model, provider); provider is None when the identifier does
        not name one
    """
    model, _, provider = identifier.partition("@")
    return model, provider or None
