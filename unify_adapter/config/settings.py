import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from unify_adapter.core.errors import ConfigurationError
from unify_adapter.core.logging import get_logger

from .logging import LoggingSettings
from .unify import UnifySettings


__all__ = ["Settings", "find_toml_config_file", "get_settings"]


logger = get_logger(__name__)

CONFIG_FILE_NAME = ".unify-adapter.toml"


def find_toml_config_file() -> Path | None:
    """Find the TOML configuration file.

    Searched in order:
    1. .unify-adapter.toml in the current directory
    2. config.toml in XDG_CONFIG_HOME/unify-adapter/
    """
    local = Path.cwd() / CONFIG_FILE_NAME
    if local.exists():
        return local

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"
    user_config = config_home / "unify-adapter" / "config.toml"
    if user_config.exists():
        return user_config

    return None


class Settings(BaseSettings):
    """
    Configuration settings for the Unify adapter.

    Settings are loaded from environment variables, .env files and an optional
    TOML configuration file. Environment variables take precedence over values
    from the TOML file; nested keys use ``__`` (e.g. ``UNIFY__API_KEY``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    unify: UnifySettings = Field(
        default_factory=UnifySettings,
        description="Upstream endpoint and budgeting settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    def model_dump_safe(self) -> dict[str, Any]:
        """Dump settings with the API key masked."""
        data = self.model_dump(mode="json")
        if data["unify"].get("api_key"):
            data["unify"]["api_key"] = "***"
        return data

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file."""
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read TOML config file {toml_path}: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls,
        config_path: Path | str | None = None,
        **kwargs: Any,
    ) -> "Settings":
        """Create Settings from a configuration file, environment and overrides.

        Args:
            config_path: Explicit TOML file; falls back to ``CONFIG_FILE`` and
                then to :func:`find_toml_config_file`
            **kwargs: Nested overrides applied last, e.g. ``unify={"api_key": ...}``

        Raises:
            ConfigurationError: If the file cannot be read or values are invalid
        """
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path and config_path.exists():
            config_data = cls.load_toml_config(config_path)
            logger.info(
                "config_file_loaded",
                path=str(config_path),
                category="config",
            )

        try:
            settings = cls()

            for key, value in config_data.items():
                if not hasattr(settings, key) or not isinstance(value, dict):
                    continue
                nested_obj = getattr(settings, key)
                for nested_key, nested_value in value.items():
                    env_key = f"{key.upper()}__{nested_key.upper()}"
                    if os.getenv(env_key) is None:
                        setattr(nested_obj, nested_key, nested_value)

            def _apply_overrides(target: Any, overrides: dict[str, Any]) -> None:
                for k, v in overrides.items():
                    sub = getattr(target, k, None)
                    if isinstance(v, dict) and isinstance(sub, BaseModel):
                        _apply_overrides(sub, v)
                    else:
                        setattr(target, k, v)

            if kwargs:
                _apply_overrides(settings, kwargs)

            # setattr above bypasses validation; re-validate the merged result
            return cls.model_validate(settings.model_dump())
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def get_settings() -> Settings:
    return Settings.from_config()
