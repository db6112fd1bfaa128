"""
Configuration loader for Mistake Notebook.

Settings come from three layers, later layers winning:
1. Model defaults (config/schema.py)
2. An optional YAML file (--config, or MISTAKE_NOTEBOOK_CONFIG)
3. Environment variables: DB_PATH, HOST, PORT, STATIC_DIR, AUTO_MIGRATE

Functions:
    load_config: Main entrypoint, returns a validated AppConfig
    apply_env_overrides: Overlay environment variables onto a raw config dict
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from mistake_notebook.exceptions import ConfigFileNotFoundError, ConfigValidationError

from .schema import AppConfig

CONFIG_PATH_ENV = "MISTAKE_NOTEBOOK_CONFIG"

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DB_PATH": ("database", "path"),
    "AUTO_MIGRATE": ("database", "auto_migrate"),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "STATIC_DIR": ("server", "static_dir"),
}


def _read_yaml(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ConfigFileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigValidationError(
            f"Failed to read configuration file {config_path}: {e}"
        ) from e

    # An empty file means "all defaults"
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigValidationError(
            f"Configuration file must contain a mapping at the top level: {config_path}"
        )
    return raw_config


def apply_env_overrides(
    raw_config: dict[str, Any], environ: dict[str, str] | None = None
) -> dict[str, Any]:
    """
    Overlay environment variables onto a raw (unvalidated) config dict.

    Empty variables are ignored. Values stay strings; pydantic coerces them
    ("8081" -> 8081, "false" -> False) during validation.

    Args:
        raw_config: Parsed YAML (not modified)
        environ: Environment mapping, defaults to os.environ

    Returns:
        dict: New config dict with overrides applied
    """
    environ = os.environ if environ is None else environ
    merged = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in raw_config.items()
    }

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if not value:
            continue
        section_values = merged.get(section)
        if not isinstance(section_values, dict):
            section_values = {}
        section_values[key] = value
        merged[section] = section_values

    return merged


def load_config(
    config_path: str | Path | None = None, environ: dict[str, str] | None = None
) -> AppConfig:
    """
    Load and validate the application configuration.

    Args:
        config_path: YAML file to read. When None, MISTAKE_NOTEBOOK_CONFIG is
            consulted; when that is unset too, only defaults and environment
            overrides apply.
        environ: Environment mapping, defaults to os.environ

    Returns:
        AppConfig: Validated configuration

    Raises:
        ConfigFileNotFoundError: If an explicitly named file does not exist
        ConfigValidationError: If YAML is invalid or validation fails

    Example:
        >>> config = load_config("examples/mistake_notebook.config.yaml")
        >>> config.server.port
        8080
    """
    environ = os.environ if environ is None else environ

    if config_path is None and environ.get(CONFIG_PATH_ENV):
        config_path = environ[CONFIG_PATH_ENV]

    raw_config: dict[str, Any] = {}
    source = "defaults"
    if config_path is not None:
        config_path = Path(config_path)
        raw_config = _read_yaml(config_path)
        source = str(config_path)

    raw_config = apply_env_overrides(raw_config, environ)

    try:
        return AppConfig.model_validate(raw_config)
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            error_messages.append(f"  - {loc}: {msg}")

        raise ConfigValidationError(
            f"Configuration validation failed ({source}):\n" + "\n".join(error_messages)
        ) from e
