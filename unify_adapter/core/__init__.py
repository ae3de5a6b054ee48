"""Core building blocks shared across the adapter."""

from .errors import (
    BudgetExhaustionError,
    ConfigurationError,
    UnifyAdapterError,
    UpstreamError,
)
from .logging import get_logger, setup_logging


__all__ = [
    "UnifyAdapterError",
    "ConfigurationError",
    "BudgetExhaustionError",
    "UpstreamError",
    "get_logger",
    "setup_logging",
]
