"""Mock logger capturing formatted messages per level."""

from __future__ import annotations

import logging
from typing import Any


class MockLogger(logging.Logger):
    """Mock logger for testing with full logging.Logger compatibility."""

    def __init__(self, name: str = "mock") -> None:
        """Initialize mock logger."""
        super().__init__(name)
        self.info_messages: list[str] = []
        self.warning_messages: list[str] = []
        self.error_messages: list[str] = []
        self.debug_messages: list[str] = []
        self.critical_messages: list[str] = []
        self.exception_messages: list[str] = []

    @staticmethod
    def _format_message(message: str, *args: object) -> str:
        if args:
            try:
                return message % args
            except (TypeError, ValueError):
                return f"{message} {args}"
        return message

    def debug(self, msg: object, *args: object, **kwargs: Any) -> None:
        """Capture a debug message."""
        self.debug_messages.append(self._format_message(str(msg), *args))

    def info(self, msg: object, *args: object, **kwargs: Any) -> None:
        """Capture an info message."""
        self.info_messages.append(self._format_message(str(msg), *args))

    def warning(self, msg: object, *args: object, **kwargs: Any) -> None:
        """Capture a warning message."""
        self.warning_messages.append(self._format_message(str(msg), *args))

    def error(self, msg: object, *args: object, **kwargs: Any) -> None:
        """Capture an error message."""
        self.error_messages.append(self._format_message(str(msg), *args))

    def critical(self, msg: object, *args: object, **kwargs: Any) -> None:
        """Capture a critical message."""
        self.critical_messages.append(self._format_message(str(msg), *args))

    def exception(self, msg: object, *args: object, **kwargs: Any) -> None:
        """Capture an exception message."""
        self.exception_messages.append(self._format_message(str(msg), *args))

    def isEnabledFor(self, level: int) -> bool:  # noqa: N802
        """All levels are captured."""
        return True
