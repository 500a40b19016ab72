"""Configuration and logging setup for entres."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from entres.models import ConflictResolutionStrategy, MergeStrategy

# Default config file location
CONFIG_FILE_PATH = Path.home() / ".config" / "entres" / "config.toml"

# Length cap for any single name, alias or context field
DEFAULT_MAX_FIELD_LENGTH = 100_000


def _load_config_file(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file if it exists.

    Args:
        config_path: Path to config file. Defaults to ~/.config/entres/config.toml

    Returns:
        Dictionary of configuration values, empty dict if file doesn't exist
    """
    path = config_path or CONFIG_FILE_PATH
    if not path.exists():
        return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        # Config file is optional
        logging.getLogger(__name__).warning(
            "Failed to load config file %s: %s", path, type(e).__name__
        )
        return {}


class Settings(BaseSettings):
    """Resolution defaults loaded from environment variables.

    Settings are loaded in priority order:
    1. Environment variables (highest priority)
    2. .env file
    3. ~/.config/entres/config.toml (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="ENTRES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Matching defaults
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    max_merge_candidates: int = 5  # advisory only
    enable_phonetic_matching: bool = True
    enable_semantic_matching: bool = False  # reserved
    merge_strategy: MergeStrategy = MergeStrategy.HIGHEST_CONFIDENCE
    conflict_resolution: ConflictResolutionStrategy = (
        ConflictResolutionStrategy.PREFER_HIGHER_CONFIDENCE
    )

    # Confidence boosts
    enable_confidence_boost: bool = True
    merge_confidence_boost: float = Field(default=0.1, ge=0.0, le=1.0)

    detect_temporal_relationships: bool = True

    # Input limits
    max_field_length: int = DEFAULT_MAX_FIELD_LENGTH
    max_entities_per_request: int = 500  # enforced by the server, not the engine

    # Logging
    log_level: str = "INFO"

    @model_validator(mode="before")
    @classmethod
    def load_from_config_file(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Load values from config file for any fields not set via env vars."""
        config_data = _load_config_file()

        if not config_data:
            return values

        # Config file uses same keys as settings fields
        for key in cls.model_fields:
            # Env var takes precedence
            if key not in values or values[key] is None:
                if key in config_data:
                    values[key] = config_data[key]

        return values


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the singleton Settings instance.

    Primarily used for testing to ensure fresh settings are loaded.
    """
    global _settings
    _settings = None


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging for entres."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "configure_logging",
    "CONFIG_FILE_PATH",
    "DEFAULT_MAX_FIELD_LENGTH",
]
