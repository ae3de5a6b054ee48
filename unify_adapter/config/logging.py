"""Logging configuration settings."""

from typing import Literal

from pydantic import BaseModel, Field


class LoggingSettings(BaseModel):
    """Logging output settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level for adapter and HTTP library loggers",
    )

    json_logs: bool = Field(
        default=False,
        description="Render logs as JSON instead of console output",
    )
