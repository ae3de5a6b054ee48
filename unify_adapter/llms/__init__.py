"""LLM request models and context-window utilities."""
