"""Unify upstream configuration settings."""

from pydantic import BaseModel, Field


DEFAULT_MODEL = "mistral-7b-instruct-v0.2@fireworks-ai"
UNIFY_API_URL = "https://api.unify.ai/v0/inference"


class UnifySettings(BaseModel):
    """Upstream endpoint, credential and budgeting settings."""

    api_key: str | None = Field(
        default=None,
        description="Bearer token for the Unify inference API",
    )

    api_url: str = Field(
        default=UNIFY_API_URL,
        description="Inference endpoint URL",
    )

    default_model: str = Field(
        default=DEFAULT_MODEL,
        description="Model identifier (<model>@<provider>) used when a request names none",
    )

    reserved_output_tokens: int = Field(
        default=1024,
        ge=0,
        description="Tokens held back from the context window for the model's reply",
    )

    model_limits: dict[str, int] = Field(
        default_factory=dict,
        description="Context window overrides keyed by model name",
    )

    timeout: float = Field(
        default=240.0,
        gt=0,
        description="Upstream request timeout in seconds",
    )
