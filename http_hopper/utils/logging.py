"""Structured logging utilities for HTTP Hopper.

Uses structlog for structured logging with Rich for console output.
"""

import logging
from typing import Optional, Any, Dict
from datetime import datetime, timezone
from enum import Enum

import structlog
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme
from rich.style import Style


class LogLevel(Enum):
    """Log levels for the application."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


HOPPER_THEME = Theme({
    "info": Style(color="cyan"),
    "warning": Style(color="yellow", bold=True),
    "error": Style(color="red", bold=True),
    "success": Style(color="green", bold=True),
    "status.ok": Style(color="green"),
    "status.redirect": Style(color="yellow"),
    "status.error": Style(color="red", bold=True),
    "uri": Style(color="cyan", italic=True),
    "header": Style(color="magenta"),
    "timing": Style(color="blue"),
})

# Diagnostics go to stderr so fetched documents can be piped from stdout
console = Console(theme=HOPPER_THEME, stderr=True)


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add ISO timestamp to log events."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def add_log_level(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add log level to event dict."""
    event_dict["level"] = method_name.upper()
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    quiet: bool = False,
) -> structlog.BoundLogger:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format instead of pretty console
        log_file: Optional file path to write logs to
        quiet: If True, suppress console output

    Returns:
        Configured structlog logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers = []

    if not quiet:
        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        rich_handler.setLevel(log_level)
        handlers.append(rich_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        handlers.append(file_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        add_timestamp,
        add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback,
        ))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("http_hopper")


def get_logger(name: str = "http_hopper") -> structlog.BoundLogger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name (usually module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class RequestLogger:
    """Human-readable hop output on the Rich console."""

    def __init__(self, verbose: bool = False, quiet: bool = False):
        self.verbose = verbose
        self.quiet = quiet
        self._stats = {
            "requests": 0,
            "hops": 0,
            "redirects": 0,
            "errors": 0,
        }
        self._current_hops = 0

    def request_start(self, method: str, uri: str) -> None:
        self._stats["requests"] += 1
        self._current_hops = 0
        if not self.quiet:
            console.print(f"[info]{method}[/info] [uri]{escape(uri)}[/uri]")

    def hop(self, index: int, uri: str, status: Optional[int], elapsed: float) -> None:
        """Log one completed exchange."""
        self._stats["hops"] += 1
        self._current_hops += 1
        if self.verbose and not self.quiet:
            console.print(
                f"  hop {index}: [{self._status_style(status)}]{status}[/] "
                f"[uri]{escape(uri)}[/uri] [timing]{elapsed:.3f}s[/timing]"
            )

    def redirect(self, source: str, target: str) -> None:
        self._stats["redirects"] += 1
        if self.verbose and not self.quiet:
            console.print(f"  [status.redirect]->[/status.redirect] [uri]{escape(target)}[/uri]")

    def request_complete(self, status: Optional[int], ok: bool, duration: float) -> None:
        if not self.quiet:
            label = "[success]ok[/success]" if ok else "[error]not ok[/error]"
            console.print(
                f"[{self._status_style(status)}]{status}[/] {label} "
                f"after {self._current_hops} hop(s) in [timing]{duration:.2f}s[/timing]"
            )

    def error(self, message: str, exception: Optional[Exception] = None) -> None:
        """Log error."""
        self._stats["errors"] += 1
        if not self.quiet:
            console.print(f"[error]Error:[/error] {escape(message)}")
            if exception and self.verbose:
                console.print(repr(exception), markup=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            console.print(f"[warning]Warning:[/warning] {escape(message)}")

    def info(self, message: str) -> None:
        if not self.quiet:
            console.print(f"[info]Info:[/info] {escape(message)}")

    @staticmethod
    def _status_style(status: Optional[int]) -> str:
        if status is None or status >= 400 or status == 305:
            return "status.error"
        if status >= 300:
            return "status.redirect"
        return "status.ok"

    @property
    def stats(self) -> Dict[str, int]:
        """Get current statistics."""
        return self._stats.copy()
