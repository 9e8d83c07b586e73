"""Core module - reconciliation logic, models, configuration and logging."""

from core.core_config import load_config
from core.exceptions import ConfigurationError
from core.logger import get_loggers

__all__ = [
    "ConfigurationError",
    "get_loggers",
    "load_config",
]
