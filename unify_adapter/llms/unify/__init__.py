"""Unify inference API request models."""

from .models import (
    AdapterRequest,
    FunctionCall,
    FunctionDefinition,
    Message,
    ToolDeclaration,
    parse_model_identifier,
)


__all__ = [
    "AdapterRequest",
    "FunctionCall",
    "FunctionDefinition",
    "Message",
    "ToolDeclaration",
    "parse_model_identifier",
]
