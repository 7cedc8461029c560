"""Configuration loading, logging setup, domain models and exceptions."""

from core.core_config import ConfigurationError, load_config
from core.logger import get_loggers, resolve_log_path

__all__ = [
    "ConfigurationError",
    "get_loggers",
    "load_config",
    "resolve_log_path",
]
