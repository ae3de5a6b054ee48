"""Configuration module for the Unify adapter."""

from .settings import LoggingSettings, Settings, UnifySettings, get_settings


__all__ = [
    "Settings",
    "UnifySettings",
    "LoggingSettings",
    "get_settings",
]
