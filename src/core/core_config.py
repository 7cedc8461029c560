"""YAML configuration loading.

``load_config`` reads ``config.yaml``, substitutes environment variables
(after loading ``.env`` through python-dotenv) and validates the result
into :class:`~core.models.config_models.AppConfig`. API tokens are normally
written as ``${DISCOGS_TOKEN}`` placeholders so they never live in the file.

Substitution rules for string values:

* ``${NAME}`` alone: the variable's value, or ``""`` when unset.
* ``${NAME:-fallback}`` alone: the value, or ``fallback`` when unset or empty.
* any other string containing ``$``: ``os.path.expandvars`` semantics.
* a leading ``~``: expanded to the home directory.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from core.exceptions import ConfigurationError
from core.models.config_models import AppConfig

ConfigValue = dict[str, Any] | list[Any] | str | int | float | bool | None

logger = logging.getLogger("config")
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

MAX_CONFIG_SIZE = 1024 * 1024
CONFIG_SUFFIXES = (".yaml", ".yml")

_PLACEHOLDER = re.compile(r"^\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<fallback>[^}]*))?\}$")

__all__ = [
    "ConfigurationError",
    "build_config",
    "format_pydantic_errors",
    "load_config",
    "read_config_file",
    "resolve_env_vars",
]


def _resolve_string(value: str) -> str:
    if match := _PLACEHOLDER.match(value):
        resolved = os.getenv(match["name"], "")
        fallback = match["fallback"]
        return (resolved or fallback) if fallback is not None else resolved
    if "$" in value:
        return os.path.expandvars(value)
    if value.startswith("~"):
        return str(Path(value).expanduser())
    return value


def resolve_env_vars(config: ConfigValue) -> ConfigValue:
    """Substitute environment variables in every string of a parsed config tree."""
    if isinstance(config, dict):
        return {str(key): resolve_env_vars(value) for key, value in config.items()}
    if isinstance(config, list):
        return [resolve_env_vars(item) for item in config]
    if isinstance(config, str):
        return _resolve_string(config)
    return config


def _checked_path(config_path: str) -> Path:
    try:
        path = Path(config_path).expanduser().resolve(strict=True)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {config_path}", config_path) from e

    problem = None
    if not path.is_file():
        problem = f"Config path is not a file: {path}"
    elif path.suffix.lower() not in CONFIG_SUFFIXES:
        problem = f"Config file must end in {' or '.join(CONFIG_SUFFIXES)}: {path.name}"
    elif not os.access(path, os.R_OK):
        problem = f"Config file is not readable: {path}"
    elif path.stat().st_size > MAX_CONFIG_SIZE:
        problem = f"Config file {path} is too large (max {MAX_CONFIG_SIZE} bytes)"
    if problem:
        raise ConfigurationError(problem, config_path)
    return path


def read_config_file(config_path: str) -> ConfigValue:
    """Check ``config_path`` and return its parsed YAML content.

    Raises:
        ConfigurationError: Missing, unreadable, oversized, non-YAML or malformed file.

    """
    path = _checked_path(config_path)
    logger.info("Loading config from: %s", path)
    try:
        with path.open(encoding="utf-8") as stream:
            return yaml.safe_load(stream)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}", config_path) from e


def format_pydantic_errors(error: ValidationError) -> str:
    """One ``dotted.location: message`` line per validation error."""
    lines = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        if err["type"] == "missing":
            lines.append(f"{location}: Missing required field")
        elif err["type"] in ("value_error", "assertion_error"):
            lines.append(f"{location}: {err['msg']}")
        else:
            lines.append(f"{location}: {err['msg']} ({err['type']})")
    return "\n".join(lines)


def build_config(config_data: ConfigValue, config_path: str | None = None) -> AppConfig:
    """Validate parsed configuration data; an empty document yields the defaults."""
    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        raise ConfigurationError("Configuration data is not a dictionary after parsing.", config_path)

    try:
        return AppConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{format_pydantic_errors(e)}", config_path) from e


def load_config(config_path: str) -> AppConfig:
    """Load ``.env``, read the YAML file, substitute variables and validate.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated.

    """
    if load_dotenv():
        logger.info(".env file loaded")
    else:
        logger.info("No .env file found; using the process environment")

    config = build_config(resolve_env_vars(read_config_file(config_path)), config_path)
    logger.info(
        "Configuration loaded: targets=%s threshold=%s store=%s",
        ",".join(platform.value for platform in config.matching.target_platforms),
        config.matching.confidence_threshold,
        config.store.backend,
    )
    return config
