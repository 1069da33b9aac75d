"""
Configuration management and loading.

Handles application settings from environment variables and an optional
YAML file.
"""

import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


class ConfigError(ValueError):
    """Raised when configuration is missing or invalid."""


class StorageMode(Enum):
    """Where generated image bytes end up."""
    FS = "fs"          # written to the output directory
    INLINE = "inline"  # returned as base64 only, nothing written


DEFAULT_OUTPUT_DIR = "generated-images"
DEFAULT_DB_PATH = ".image-playground.db"
DEFAULT_SORA_MODEL = "sora-2"
DEFAULT_PROMPT_ENHANCE_MODEL = "gpt-5.2-chat"


@dataclass(frozen=True)
class Settings:
    """Complete runtime configuration."""
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    storage_mode: StorageMode = StorageMode.FS
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    db_path: str = DEFAULT_DB_PATH
    azure_api_key: Optional[str] = None
    azure_endpoint: Optional[str] = None
    sora_model: str = DEFAULT_SORA_MODEL
    prompt_enhance_model: str = DEFAULT_PROMPT_ENHANCE_MODEL
    prompt_enhance_deployment: Optional[str] = None
    log_level: str = "INFO"

    @property
    def enhance_api_key(self) -> Optional[str]:
        return self.azure_api_key or self.openai_api_key

    @property
    def enhance_base_url(self) -> Optional[str]:
        return self.azure_endpoint or self.openai_base_url

    @property
    def enhance_model(self) -> str:
        """Azure deployment name when set, otherwise the model name."""
        return self.prompt_enhance_deployment or self.prompt_enhance_model

    def require_openai_key(self) -> str:
        if not self.openai_api_key:
            raise ConfigError("Server configuration error: API key not found.")
        return self.openai_api_key

    def require_azure(self) -> None:
        if not self.azure_api_key or not self.azure_endpoint:
            raise ConfigError(
                "Server configuration error: Azure OpenAI credentials are incomplete."
            )


def resolve_storage_mode(explicit: Optional[str], on_vercel: bool) -> StorageMode:
    """Pick the storage mode.

    An explicit setting wins; on Vercel the filesystem is read-only so
    images stay inline; everywhere else they are written to disk.
    """
    if explicit:
        try:
            return StorageMode(explicit.strip().lower())
        except ValueError:
            valid_modes = [mode.value for mode in StorageMode]
            raise ConfigError(f"storage mode must be one of: {valid_modes}")
    if on_vercel:
        return StorageMode.INLINE
    return StorageMode.FS


def _env(environ: Mapping[str, str], key: str) -> Optional[str]:
    value = environ.get(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Settings with defaults for anything unset
    """
    env = os.environ if environ is None else environ
    return Settings(
        openai_api_key=_env(env, "OPENAI_API_KEY"),
        openai_base_url=_env(env, "OPENAI_API_BASE_URL"),
        storage_mode=resolve_storage_mode(
            _env(env, "IMAGE_STORAGE_MODE"), env.get("VERCEL") == "1"
        ),
        output_dir=Path(_env(env, "IMAGE_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR),
        db_path=_env(env, "IMAGE_PLAYGROUND_DB") or DEFAULT_DB_PATH,
        azure_api_key=_env(env, "AZURE_OPENAI_API_KEY"),
        azure_endpoint=_env(env, "AZURE_OPENAI_ENDPOINT"),
        sora_model=_env(env, "AZURE_OPENAI_SORA_MODEL") or DEFAULT_SORA_MODEL,
        prompt_enhance_model=_env(env, "PROMPT_ENHANCE_MODEL") or DEFAULT_PROMPT_ENHANCE_MODEL,
        prompt_enhance_deployment=_env(env, "AZURE_OPENAI_PROMPT_ENHANCE_DEPLOYMENT_NAME"),
        log_level=(_env(env, "LOG_LEVEL") or "INFO").upper(),
    )


# YAML keys map onto Settings fields; secrets stay in the environment
_ALLOWED_KEYS = {
    "storage_mode",
    "output_dir",
    "db_path",
    "sora_model",
    "prompt_enhance_model",
    "log_level",
    "openai_base_url",
    "azure_endpoint",
}


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """Load settings from the environment, overlaid by a YAML file.

    Strict validation: unknown keys and wrong types are rejected so a typo
    never silently falls back to a default.

    Args:
        path: Optional path to a YAML configuration file
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ConfigError: If configuration is invalid
    """
    settings = settings_from_env(environ)
    if path is None:
        return settings

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return settings
    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration file must contain a mapping")

    unknown_keys = set(raw_config.keys()) - _ALLOWED_KEYS
    if unknown_keys:
        raise ConfigError(f"Unknown configuration keys: {sorted(unknown_keys)}")

    return replace(settings, **_parse_overrides(raw_config))


def _parse_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate YAML values and convert them to Settings field types."""
    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"'{key}' must be a non-empty string")
        value = value.strip()
        if key == "storage_mode":
            overrides[key] = resolve_storage_mode(value, on_vercel=False)
        elif key == "output_dir":
            overrides[key] = Path(value)
        elif key == "log_level":
            if value.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
                raise ConfigError(f"'log_level' must be a logging level name, got {value}")
            overrides[key] = value.upper()
        else:
            overrides[key] = value
    return overrides
