"""
Configuration management with three-tier precedence system:
1. Default values from codebase
2. Environment variables from .env
3. Explicit overrides (command-line flags)

Precedence: Overrides > Environment Variables > Defaults
"""

import os
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()


class ConfigManager:
    """Manages configuration with three-tier precedence."""

    # Default values (Tier 1 - Codebase defaults)
    DEFAULTS = {
        "API_KEY": "",
        "LLM_API_BASE_URL": "https://generativelanguage.googleapis.com/v1beta/openai/",
        "LLM_MODEL": "gemini-2.0-flash",
        "FALLBACK_MODELS": "gemini-1.5-pro:gemini-1.5-flash,gemini-2.5-pro:gemini-2.5-flash",
        "RETRY_DELAY_SECONDS": "0.5",
        "REQUEST_TIMEOUT_SECONDS": "600",
        "INTER_ITEM_DELAY_SECONDS": "0.5",
        "MAX_INLINE_AUDIO_MB": "15",
        "SPLIT_CHUNK_MB": "6",
        "TRANSCRIPT_LANGUAGE": "Vietnamese",
        "LOG_LEVEL": "INFO",
    }

    # Alternative environment names checked after the primary key
    ALIASES = {
        "API_KEY": ("VITE_API_KEY",),
    }

    SECRET_KEYS = {"API_KEY"}

    @staticmethod
    def get(key: str, override: Optional[Any] = None) -> Any:
        """
        Get configuration value with three-tier precedence.

        Args:
            key: Configuration key
            override: Explicit value (highest priority)

        Returns:
            Configuration value from highest priority source
        """
        value, _ = ConfigManager.get_display_value(key, override)
        return value

    @staticmethod
    def get_display_value(key: str, override: Optional[Any] = None) -> Tuple[Any, str]:
        """
        Get configuration value and its source.

        Returns:
            Tuple of (value, source) where source is 'override', 'env', or 'default'
        """
        # Tier 3: explicit override
        if override is not None and override != "":
            return override, "override"

        # Tier 2: environment variable (primary name, then aliases)
        for name in (key,) + ConfigManager.ALIASES.get(key, ()):
            env_value = os.getenv(name)
            if env_value is not None and env_value != "":
                return env_value, "env"

        # Tier 1: default value
        return ConfigManager.DEFAULTS.get(key, ""), "default"

    @staticmethod
    def get_float(key: str, override: Optional[Any] = None) -> float:
        """Get a numeric configuration value as float."""
        value = ConfigManager.get(key, override)
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be a number, got {value!r}") from e

    @staticmethod
    def get_int(key: str, override: Optional[Any] = None) -> int:
        """Get a numeric configuration value as int."""
        value = ConfigManager.get(key, override)
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e

    @staticmethod
    def fallback_models(override: Optional[str] = None) -> Dict[str, str]:
        """Get the primary -> fallback model mapping."""
        return parse_fallback_models(ConfigManager.get("FALLBACK_MODELS", override))


def parse_fallback_models(value: str) -> Dict[str, str]:
    """
    Parse a ``primary:fallback`` list into a mapping.

    Args:
        value: Comma-separated pairs, e.g. "gemini-1.5-pro:gemini-1.5-flash"

    Returns:
        Dictionary mapping each primary model to its cheaper fallback

    Raises:
        ConfigurationError: If a pair is malformed or maps a model to itself
    """
    mapping: Dict[str, str] = {}
    for pair in (value or "").split(","):
        pair = pair.strip()
        if not pair:
            continue
        primary, sep, fallback = pair.partition(":")
        primary, fallback = primary.strip(), fallback.strip()
        if not sep or not primary or not fallback:
            raise ConfigurationError(f"Invalid fallback model pair: {pair!r}")
        if primary == fallback:
            raise ConfigurationError(f"Model {primary!r} cannot fall back to itself")
        mapping[primary] = fallback
    return mapping


def mask_secret(value: str) -> str:
    """Mask a credential for display, keeping only its last four characters."""
    if not value:
        return ""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]
