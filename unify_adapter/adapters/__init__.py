"""Upstream service adapters."""

from .unify import AdapterResponse, UnifyAdapter


__all__ = ["AdapterResponse", "UnifyAdapter"]
