"""Adapter that shapes chat requests for the Unify inference API and relays the stream."""

from collections.abc import AsyncIterator, Mapping
from types import TracebackType
from typing import Any

from unify_adapter.config.settings import Settings
from unify_adapter.config.unify import DEFAULT_MODEL, UNIFY_API_URL
from unify_adapter.core.errors import ConfigurationError, UpstreamError
from unify_adapter.core.http import (
    ByteStream,
    HTTPXStreamingTransport,
    StreamingTransport,
    TransportError,
)
from unify_adapter.core.logging import get_logger
from unify_adapter.llms.unify.models import AdapterRequest, parse_model_identifier
from unify_adapter.llms.utils import (
    budget_for_model,
    limit_messages_to_budget,
    sanitize_messages,
)


logger = get_logger(__name__)

UPSTREAM_ERROR_PREFIX = "Error fetching response from Unify API"


class AdapterResponse:
    """Streamed upstream response, relayed byte-for-byte.

    ``stream`` yields the upstream body chunks unmodified. Failures while
    reading surface as :class:`UpstreamError`.
    """

    def __init__(self, body: ByteStream) -> None:
        self._body = body
        self.stream: AsyncIterator[bytes] = self._relay()

    async def _relay(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._body:
                yield chunk
        except TransportError as e:
            logger.warning(
                "upstream_stream_failed",
                error=str(e),
                status_code=e.status_code,
                category="upstream",
            )
            error = UpstreamError(
                f"{UPSTREAM_ERROR_PREFIX}: {e}", status_code=e.status_code
            )
        else:
            return
        # Raised outside the handler so the transport error is not attached
        raise error

    async def aclose(self) -> None:
        await self._body.aclose()

    async def __aenter__(self) -> "AdapterResponse":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


class UnifyAdapter:
    """Forward chat requests to Unify, trimmed to the model's context window.

    The request is copied, the conversation is cut down to the token budget
    of the selected model, internal fields are stripped, and the payload is
    posted with streaming enabled. The upstream stream is returned as-is.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        *,
        api_url: str = UNIFY_API_URL,
        reserved_output_tokens: int = 1024,
        model_limits: Mapping[str, int] | None = None,
        timeout: float = 240.0,
        transport: StreamingTransport | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            api_key: Unify API key, sent as a bearer token
            model: Default model identifier (``<model>@<provider>``)
            api_url: Inference endpoint URL
            reserved_output_tokens: Tokens kept free for the model's reply
            model_limits: Context window overrides keyed by model name
            timeout: Request timeout for the default transport
            transport: Transport to use instead of the default HTTPX one

        Raises:
            ConfigurationError: If no API key is supplied
        """
        if not api_key:
            raise ConfigurationError("API key is required for UnifyAdapter")

        self._api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.api_url = api_url
        self.reserved_output_tokens = reserved_output_tokens
        self.model_limits = dict(model_limits or {})
        self.transport = transport or HTTPXStreamingTransport(timeout=timeout)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: StreamingTransport | None = None,
    ) -> "UnifyAdapter":
        """Create an adapter from loaded settings."""
        settings = settings or Settings.from_config()
        unify = settings.unify
        return cls(
            unify.api_key,
            unify.default_model,
            api_url=unify.api_url,
            reserved_output_tokens=unify.reserved_output_tokens,
            model_limits=unify.model_limits,
            timeout=unify.timeout,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build_payload(self, request: AdapterRequest | Mapping[str, Any]) -> dict[str, Any]:
        """Build the outbound payload without sending it.

        Raises:
            BudgetExhaustionError: If the tool declarations (or the system
                message) leave no room in the model's budget
        """
        if isinstance(request, AdapterRequest):
            request = request.model_copy(deep=True)
        else:
            request = AdapterRequest.model_validate(dict(request))

        model_id = request.model or self.model
        model_name, provider = parse_model_identifier(model_id)
        tools = request.tools or []

        budget = budget_for_model(
            model_name, self.reserved_output_tokens, self.model_limits
        )
        result = limit_messages_to_budget(request.messages, tools, budget)
        messages = sanitize_messages(result.messages)

        logger.debug(
            "request_shaped",
            model=model_name,
            provider=provider,
            budget=budget,
            tool_tokens=result.tool_tokens,
            message_tokens=result.message_tokens,
            messages_removed=result.dropped_count,
            category="context_management",
        )

        arguments = request.passthrough_fields()
        arguments["stream"] = True
        arguments["messages"] = [m.to_payload() for m in messages]
        if tools:
            arguments["tools"] = [t.to_payload() for t in tools]

        payload: dict[str, Any] = {"model": model_name}
        if provider is not None:
            payload["provider"] = provider
        else:
            logger.warning(
                "model_identifier_without_provider",
                model=model_id,
                category="upstream",
            )
        payload["arguments"] = arguments
        return payload

    async def get_response(
        self, request: AdapterRequest | Mapping[str, Any]
    ) -> AdapterResponse:
        """Send the shaped request and return the upstream stream.

        Args:
            request: Inbound request; never modified

        Returns:
            AdapterResponse wrapping the raw upstream stream

        Raises:
            BudgetExhaustionError: If nothing fits in the model's budget
            UpstreamError: If the upstream request fails
        """
        payload = self.build_payload(request)

        try:
            body = await self.transport.open_stream(
                self.api_url, payload, self._headers()
            )
        except TransportError as e:
            logger.warning(
                "upstream_request_failed",
                error=str(e),
                status_code=e.status_code,
                category="upstream",
            )
            error = UpstreamError(
                f"{UPSTREAM_ERROR_PREFIX}: {e}", status_code=e.status_code
            )
        except Exception as e:
            logger.warning(
                "upstream_request_failed",
                error=str(e),
                error_type=type(e).__name__,
                category="upstream",
            )
            detail = str(e)
            message = (
                f"{UPSTREAM_ERROR_PREFIX}: {detail}"
                if detail
                else "An unknown error occurred while fetching response from Unify API"
            )
            error = UpstreamError(message)
        else:
            return AdapterResponse(body)

        # Raised outside the handler so the transport error is not attached
        raise error

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "UnifyAdapter":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
