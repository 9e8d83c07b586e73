"""Configuration management for scrobble-sync."""

from __future__ import annotations

import logging
import os
import pathlib
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from core.exceptions import ConfigurationError
from core.models.track_models import AppConfig

# Type definitions for configuration
ConfigValue = dict[str, Any] | list[Any] | str | int | float | bool | None

DEFAULT_CONFIG_PATH = "config.yaml"
MAX_CONFIG_SIZE = 1024 * 1024  # 1MB

# Output is routed by get_loggers() once logging is configured
logger = logging.getLogger("config")
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
logger.setLevel(logging.INFO)


def resolve_env_vars(config: ConfigValue) -> ConfigValue:
    """Recursively resolve environment variables in config values.

    A value that is exactly ``${VAR}`` becomes the variable's value (empty
    when unset); other strings get ``$VAR``/``${VAR}`` and ``~`` expanded.
    """
    if isinstance(config, dict):
        return {str(k): resolve_env_vars(v) for k, v in config.items()}
    if isinstance(config, list):
        return [resolve_env_vars(item) for item in config]
    if isinstance(config, str):
        if config.startswith("${") and config.endswith("}"):
            return os.getenv(config[2:-1], "")
        result = config
        if "$" in result:
            result = os.path.expandvars(result)
        if result.startswith("~"):
            result = str(pathlib.Path(result).expanduser())
        return result
    return config


def _validate_config_path(path: str) -> pathlib.Path:
    """Resolve the configuration path and check it is a readable YAML file.

    Raises:
        FileNotFoundError: If the path does not exist or is not a file.
        ValueError: If the file has a wrong extension or is too large.
        PermissionError: If the file is not readable.

    """
    try:
        resolved_path = pathlib.Path(path).expanduser().resolve(strict=True)
    except FileNotFoundError as e:
        msg = f"Config file not found at the specified path: {path}"
        raise FileNotFoundError(msg) from e

    if not resolved_path.is_file():
        msg = f"Config path does not point to a file: {resolved_path}"
        raise FileNotFoundError(msg)
    if not os.access(resolved_path, os.R_OK):
        msg = f"No read permission for config file: {resolved_path}"
        raise PermissionError(msg)
    if resolved_path.suffix.lower() not in (".yaml", ".yml"):
        msg = "Configuration file must have a .yaml or .yml extension"
        raise ValueError(msg)
    if resolved_path.stat().st_size > MAX_CONFIG_SIZE:
        msg = f"Config file {resolved_path} is too large (max {MAX_CONFIG_SIZE} bytes)"
        raise ValueError(msg)
    return resolved_path


def format_pydantic_errors(error: ValidationError) -> str:
    """Format Pydantic validation errors as one ``location: message`` line each."""
    error_messages: list[str] = []
    for err in error.errors():
        loc_path = ".".join(str(loc) for loc in err["loc"])
        if err["type"] == "missing":
            error_messages.append(f"{loc_path}: Missing required field")
        else:
            error_messages.append(f"{loc_path}: {err['msg']}")
    return "\n".join(error_messages)


def default_config_path() -> str:
    """``CONFIG_PATH`` from the environment (after loading ``.env``) or ``config.yaml``."""
    load_dotenv()
    return os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)


def load_config(config_path: str | None = None) -> AppConfig:
    """Load the YAML configuration, resolve environment variables and validate it.

    Args:
        config_path: Path to the configuration file; defaults to ``default_config_path()``.

    Returns:
        Validated AppConfig model.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated.

    """
    env_loaded = load_dotenv()
    logger.info(".env file %s", "found and loaded" if env_loaded else "not found, using system environment variables")

    path = config_path or default_config_path()
    try:
        validated_path = _validate_config_path(path)
        logger.info("Loading config from: %s", validated_path)
        config_data = resolve_env_vars(yaml.safe_load(validated_path.read_text(encoding="utf-8")))
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.critical("Configuration loading failed: %s", e)
        raise ConfigurationError(str(e), config_path=path) from e

    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        msg = "Configuration data is not a mapping after parsing."
        raise ConfigurationError(msg, config_path=path)

    try:
        config_model = AppConfig(**config_data)
    except ValidationError as e:
        msg = f"Configuration validation failed:\n{format_pydantic_errors(e)}"
        logger.critical(msg)
        raise ConfigurationError(msg, config_path=path) from e

    logger.info("Configuration successfully loaded and validated.")
    return config_model
