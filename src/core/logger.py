"""Logging setup: RichHandler on the console, queue-fed file handlers for log files.

Features:

1.  **Run Tracking:** Headers/footers with timestamps and duration around every run (`RunHandler`).
2.  **Log Rotation by Runs:** Log files keep only the most recent N runs (`RunHandler.trim_log_to_max_runs`).
3.  **Rich Console Output:** `rich.logging.RichHandler` for colored, compact terminal output.
4.  **Non-Blocking File Logging:** `QueueHandler` + `QueueListener` keep file I/O off the event loop.
5.  **Separate Sync Log:** Backfill and delete outcomes go to their own file (`sync_logger`).
6.  **Path Shortening:** The home directory is shown as `~` in file logs (`shorten_path`).
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# All operational output goes through a configured ``logging.Logger``.
# ``print()`` is reserved for logging setup/teardown failures.
# ---------------------------------------------------------------------------
import logging
import queue
import re
import sys
import time
import traceback
from datetime import UTC, datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from core.models.track_models import AppConfig

__all__ = [
    "LEVEL_ABBREV",
    "CompactFormatter",
    "LogFormat",
    "LoggerFilter",
    "RunHandler",
    "RunTrackingHandler",
    "SafeQueueListener",
    "create_console_logger",
    "create_fallback_loggers",
    "ensure_directory",
    "get_log_file_paths",
    "get_log_levels_from_config",
    "get_loggers",
    "get_shared_console",
    "setup_queue_logging",
    "shorten_path",
]

# Module-level shared console container (avoids global statement)
_console_holder: dict[str, Console] = {}


def get_shared_console() -> Console:
    """Get or create the shared Rich console instance.

    Logging and table output share one Console so lines do not interleave.
    """
    if "console" not in _console_holder:
        _console_holder["console"] = Console()
    return _console_holder["console"]


class SafeQueueListener(QueueListener):
    """A QueueListener whose stop() tolerates being called twice."""

    def stop(self) -> None:
        """Stop the listener thread if it is still running."""
        try:
            if getattr(self, "_thread", None) is not None:
                super().stop()
        except (AttributeError, RuntimeError, TypeError) as e:
            print(f"Warning: Error stopping QueueListener: {e}", file=sys.stderr)


# ANSI codes for run separators in log files
RESET = "\033[0m"
BLUE = "\033[34m"

LEVEL_ABBREV = {
    "DEBUG": "D",
    "INFO": "I",
    "WARNING": "W",
    "ERROR": "E",
    "CRITICAL": "C",
}

RUN_SEPARATOR = "=" * 80
RUN_HEADER_MARK = "NEW RUN:"


class LogFormat:
    """Rich markup helpers for consistent console messages."""

    @staticmethod
    def entity(name: str) -> str:
        """Highlight an artist, track or service name."""
        return f"[cyan]{name}[/cyan]"

    @staticmethod
    def number(value: float) -> str:
        """Highlight a count."""
        return f"[bold]{value}[/bold]"

    @staticmethod
    def success(text: str) -> str:
        """Green text."""
        return f"[green]{text}[/green]"

    @staticmethod
    def error(text: str) -> str:
        """Red text."""
        return f"[red]{text}[/red]"

    @staticmethod
    def warning(text: str) -> str:
        """Yellow text."""
        return f"[yellow]{text}[/yellow]"

    @staticmethod
    def dim(text: str) -> str:
        """Secondary text."""
        return f"[dim]{text}[/dim]"


class LoggerFilter:
    """Filter that only allows records from specific logger names."""

    def __init__(self, allowed_loggers: list[str]) -> None:
        """Initialize filter with allowed logger names (children pass too)."""
        self.allowed_loggers = set(allowed_loggers)

    def filter(self, record: logging.LogRecord) -> bool:
        """Return True when the record comes from an allowed logger or its child."""
        return any(record.name == name or record.name.startswith(f"{name}.") for name in self.allowed_loggers)


class RunHandler:
    """Formats run separators and trims log files to the last ``max_runs`` runs."""

    def __init__(self, max_runs: int = 5) -> None:
        self.max_runs = max_runs
        self.current_run_id = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        self.run_start_time = time.monotonic()

    @staticmethod
    def format_run_header(logger_name: str) -> str:
        """Header written before the first record of a run."""
        now_str = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        return f"\n\n{BLUE}{RUN_SEPARATOR}{RESET}\n{RUN_HEADER_MARK} {logger_name} - {now_str}\n{BLUE}{RUN_SEPARATOR}{RESET}\n\n"

    def format_run_footer(self, logger_name: str) -> str:
        """Footer with the elapsed run time."""
        elapsed = time.monotonic() - self.run_start_time
        return f"\n\n{BLUE}{RUN_SEPARATOR}{RESET}\nEND RUN: {logger_name} - Total time: {elapsed:.2f}s\n{BLUE}{RUN_SEPARATOR}{RESET}\n\n"

    def trim_log_to_max_runs(self, log_file: str) -> None:
        """Keep only the most recent ``max_runs`` runs, identified by run headers."""
        path = Path(log_file)
        if not path.exists() or self.max_runs <= 0:
            return

        try:
            with path.open(encoding="utf-8", errors="ignore") as f:
                lines = f.readlines()

            separator = re.compile(r"^(\x1b\[\d+m)?={80}(\x1b\[0m)?$")
            header_indices = [
                i
                for i, line in enumerate(lines)
                if separator.match(line.strip()) and i + 1 < len(lines) and lines[i + 1].startswith(RUN_HEADER_MARK)
            ]
            if len(header_indices) <= self.max_runs:
                return

            start_line_index = header_indices[-self.max_runs]
            temp_log_file = path.with_name(f"{path.name}.tmp")
            with temp_log_file.open("w", encoding="utf-8") as f:
                f.writelines(lines[start_line_index:])
            temp_log_file.replace(path)
        except OSError as e:
            print(f"Error trimming log file {log_file}: {e}", file=sys.stderr)


def ensure_directory(path: str, error_logger: logging.Logger | None = None) -> None:
    """Create ``path`` (and parents) when missing."""
    try:
        if path and not Path(path).exists():
            Path(path).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        if error_logger:
            error_logger.exception("Error creating directory %s", path)
        else:
            print(f"ERROR: Error creating directory {path}: {e}", file=sys.stderr)


def shorten_path(path: str) -> str:
    """Replace the home directory prefix with ``~``."""
    if not path:
        return path
    home = str(Path.home())
    if path == home or path.startswith(f"{home}/"):
        return "~" + path[len(home) :]
    return path


class CompactFormatter(logging.Formatter):
    """File log formatter: abbreviated level names and shortened source paths."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str = "%H:%M:%S",
        style: Literal["%", "{", "$"] = "%",
    ) -> None:
        default_fmt = "%(asctime)s %(levelname)s [%(name)s] %(short_pathname)s:%(lineno)d - %(message)s"
        super().__init__(fmt if fmt is not None else default_fmt, datefmt, style)

    def format(self, record: logging.LogRecord) -> str:
        """Format with temporary ``short_pathname`` and abbreviated level attributes."""
        original_levelname = record.levelname
        record.short_pathname = shorten_path(getattr(record, "pathname", "N/A"))
        record.levelname = LEVEL_ABBREV.get(original_levelname, original_levelname[:1])
        try:
            return super().format(record)
        except (ValueError, TypeError, KeyError) as format_error:
            print(f"CRITICAL LOGGING ERROR during format: {format_error}", file=sys.stderr)
            return f"FORMATTING ERROR: {original_levelname} [{record.name}] {record.msg}"
        finally:
            record.levelname = original_levelname
            del record.short_pathname


class RunTrackingHandler(logging.FileHandler):
    """File handler writing run headers/footers and trimming old runs on close."""

    def __init__(
        self,
        filename: str,
        *,
        mode: str = "a",
        encoding: str | None = "utf-8",
        delay: bool = False,
        run_handler: RunHandler | None = None,
    ) -> None:
        ensure_directory(str(Path(filename).parent))
        super().__init__(filename, mode, encoding, delay)
        self.run_handler = run_handler
        self._header_written = False
        self._closed = False

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a record, writing the run header first when needed."""
        if self.run_handler and not self._header_written and self.stream:
            try:
                self.stream.write(self.run_handler.format_run_header(record.name))
                self.flush()
            except OSError as header_error:
                print(f"Failed to write log header: {header_error}", file=sys.stderr)
                self.handleError(record)
            # A failed header is not retried
            self._header_written = True
        if self.stream:
            super().emit(record)

    def close(self) -> None:
        """Write the run footer, close the stream, then trim the file."""
        if self._closed:
            return
        self._closed = True

        try:
            if self.run_handler and self._header_written and self.stream:
                self.stream.write(self.run_handler.format_run_footer("Logger"))
                self.flush()
        except (OSError, AttributeError) as e:
            print(f"ERROR: Failed to write log footer for {self.baseFilename}: {e}", file=sys.stderr)
        finally:
            super().close()
            if self.run_handler and self.run_handler.max_runs > 0:
                self.run_handler.trim_log_to_max_runs(self.baseFilename)


def get_log_levels_from_config(config: AppConfig) -> dict[str, int]:
    """Map the ``logging.levels`` section to ``logging`` constants.

    Returns:
        Levels keyed by ``"console"``, ``"main_file"`` and ``"sync_file"``.

    """
    levels_config = config.logging.levels

    def to_level(level_name: str | None) -> int:
        level = logging.getLevelName(str(level_name or "INFO").upper())
        return level if isinstance(level, int) else logging.INFO

    return {
        "console": to_level(levels_config.console),
        "main_file": to_level(levels_config.main_file),
        "sync_file": to_level(levels_config.sync_file),
    }


def get_log_file_paths(config: AppConfig) -> dict[str, str]:
    """Absolute log file paths: ``logs_base_dir`` joined with the configured names."""
    base_dir = Path(config.logs_base_dir).expanduser()
    return {
        "main": str(base_dir / config.logging.main_log_file),
        "sync": str(base_dir / config.logging.sync_log_file),
    }


def create_console_logger(levels: dict[str, int]) -> logging.Logger:
    """Create the ``console_logger`` with a RichHandler (once per process)."""
    console_logger = logging.getLogger("console_logger")
    if not console_logger.handlers:
        ch = RichHandler(
            level=levels["console"],
            console=get_shared_console(),
            show_path=False,
            enable_link_path=False,
            log_time_format="%H:%M:%S",
            markup=True,
        )
        console_logger.addHandler(ch)
        console_logger.setLevel(levels["console"])
        console_logger.propagate = False
    return console_logger


def setup_queue_logging(
    config: AppConfig, levels: dict[str, int], log_files: dict[str, str]
) -> tuple[logging.Logger, logging.Logger, SafeQueueListener]:
    """Set up queue-based file logging.

    Returns:
        Tuple of (error_logger, sync_logger, listener).

    """
    run_handler = RunHandler(config.logging.max_runs)
    file_formatter = CompactFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(-1)

    main_handler = RunTrackingHandler(log_files["main"], run_handler=run_handler)
    main_handler.setFormatter(file_formatter)
    main_handler.setLevel(levels["main_file"])
    main_handler.addFilter(LoggerFilter(["main_logger", "error_logger", "config"]))

    sync_handler = RunTrackingHandler(log_files["sync"], run_handler=run_handler)
    sync_handler.setFormatter(file_formatter)
    sync_handler.setLevel(levels["sync_file"])
    sync_handler.addFilter(LoggerFilter(["sync_logger"]))

    listener = SafeQueueListener(log_queue, main_handler, sync_handler, respect_handler_level=True)
    listener.start()

    queue_handler = QueueHandler(log_queue)

    def setup_logger(logger_name: str, log_level: int) -> logging.Logger:
        logger = logging.getLogger(logger_name)
        if not logger.handlers:
            logger.addHandler(queue_handler)
            logger.setLevel(log_level)
            logger.propagate = False
        return logger

    setup_logger("main_logger", levels["main_file"])
    setup_logger("config", levels["main_file"])
    error_logger = setup_logger("error_logger", levels["main_file"])
    sync_logger = setup_logger("sync_logger", levels["sync_file"])
    return error_logger, sync_logger, listener


def get_loggers(
    config: AppConfig,
) -> tuple[logging.Logger, logging.Logger, logging.Logger, SafeQueueListener | None]:
    """Create the application loggers.

    Note:
        This function never raises. On setup failure it returns fallback
        loggers with a basic StreamHandler configuration.

    Returns:
        Tuple of (console_logger, error_logger, sync_logger, listener).
        Listener is ``None`` on failure.

    """
    try:
        levels = get_log_levels_from_config(config)
        log_files = get_log_file_paths(config)
        console_logger = create_console_logger(levels)
        error_logger, sync_logger, listener = setup_queue_logging(config, levels, log_files)
    except (OSError, ValueError, AttributeError, TypeError) as e:
        return create_fallback_loggers(e)

    console_logger.debug("Logging setup with QueueListener and RichHandler complete.")
    return console_logger, error_logger, sync_logger, listener


def create_fallback_loggers(e: Exception) -> tuple[logging.Logger, logging.Logger, logging.Logger, None]:
    """Basic StreamHandler loggers used when the regular setup failed."""
    print(f"FATAL ERROR: Failed to configure logging: {e}", file=sys.stderr)
    traceback.print_exc(file=sys.stderr)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    logging.critical("Fallback basic logging configured due to error: %s", e)

    console_fallback = logging.getLogger("console_fallback")
    error_fallback = logging.getLogger("error_fallback")
    sync_fallback = logging.getLogger("sync_fallback")
    for logger, stream in ((console_fallback, sys.stdout), (error_fallback, sys.stderr), (sync_fallback, sys.stdout)):
        if not logger.handlers:
            logger.addHandler(logging.StreamHandler(stream))
    return console_fallback, error_fallback, sync_fallback, None
