"""Strip internal-only fields from messages before they leave the process."""

from collections.abc import Sequence

from unify_adapter.llms.unify.models import FunctionCall, Message


def _strip_scope(call: FunctionCall) -> FunctionCall:
    data = call.model_dump(exclude={"scope"}, exclude_unset=True)
    return FunctionCall.model_validate(data)


def sanitize_messages(messages: Sequence[Message]) -> list[Message]:
    """Return the messages with every ``function_call.scope`` removed.

    Messages carrying a scope are replaced by copies; order, roles, content
    and all other fields are left as they are. The inputs are not modified.
    """
    sanitized: list[Message] = []
    for message in messages:
        call = message.function_call
        if call is not None and "scope" in call.model_fields_set:
            message = message.model_copy(update={"function_call": _strip_scope(call)})
        sanitized.append(message)
    return sanitized
