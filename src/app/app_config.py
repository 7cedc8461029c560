"""Locating and querying the reconciler configuration file."""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from core.core_config import load_config
from core.exceptions import ConfigurationError
from core.models.config_models import AppConfig

DEFAULT_CONFIG_FILES = ["config.yaml", "config.yml"]
_MISSING = object()


def _expand(path: str) -> Path:
    return Path(os.path.expandvars(path)).expanduser()


def find_config_path(explicit: str | None = None) -> str:
    """Pick the configuration file: ``--config``, then ``$CONFIG_PATH``, then a default file.

    Raises:
        FileNotFoundError: None of the candidates is available.

    """
    if explicit is not None:
        return explicit

    load_dotenv()
    if from_env := os.getenv("CONFIG_PATH"):
        return from_env

    existing = [name for name in DEFAULT_CONFIG_FILES if Path(name).exists()]
    if not existing:
        msg = (
            f"No configuration file found: CONFIG_PATH is unset and none of {DEFAULT_CONFIG_FILES} "
            "exists in the working directory."
        )
        raise FileNotFoundError(msg)
    return existing[0]


class Config:
    """Lazily loaded configuration with dotted-key lookups.

    ``Config().load()`` returns the validated :class:`AppConfig`; ``get``
    reads the same values from its JSON dump, e.g.
    ``config.get("matching.confidence_threshold")``.
    """

    def __init__(self, config_path: str | None = None) -> None:
        self.config_path = find_config_path(config_path)
        self._model: AppConfig | None = None
        self._values: dict[str, Any] = {}

    def load(self) -> AppConfig:
        """Validate the file on first use and cache the model.

        Raises:
            ConfigurationError: The file is missing, malformed or invalid

        """
        if self._model is None:
            self._model = load_config(str(_expand(self.config_path)))
            self._values = self._model.model_dump(mode="json")
        return self._model

    @property
    def model(self) -> AppConfig:
        return self.load()

    @property
    def resolved_path(self) -> str:
        """Absolute path of the configuration file."""
        return str(_expand(self.config_path).resolve())

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at dotted ``key`` or ``default`` when any segment is absent."""
        self.load()
        node: Any = self._values
        for segment in key.split("."):
            node = node.get(segment, _MISSING) if isinstance(node, dict) else _MISSING
            if node is _MISSING:
                return default
        return node

    def get_path(self, key: str, default: str = "") -> Path:
        """Path value with environment variables and ``~`` expanded."""
        value = self.get(key) or default
        return _expand(str(value))


__all__ = ["DEFAULT_CONFIG_FILES", "Config", "ConfigurationError", "find_config_path"]
