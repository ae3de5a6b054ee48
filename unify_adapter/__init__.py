"""Request-shaping adapter for the Unify inference API."""

from .adapters.unify import AdapterResponse, UnifyAdapter
from .core._version import __version__
from .core.errors import (
    BudgetExhaustionError,
    ConfigurationError,
    UnifyAdapterError,
    UpstreamError,
)


__all__ = [
    "__version__",
    "UnifyAdapter",
    "AdapterResponse",
    "UnifyAdapterError",
    "ConfigurationError",
    "BudgetExhaustionError",
    "UpstreamError",
]
