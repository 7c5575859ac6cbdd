"""structlog setup for Vibe CLI.

Log lines go to stderr by default. The interactive REPL passes a sink so
they are printed through the terminal UI and do not interleave with a
half-streamed assistant reply.
"""

import logging
import sys
from typing import TYPE_CHECKING, Callable, TextIO

import structlog

from vibe_cli.config import get_config

if TYPE_CHECKING:
    from vibe_cli.tools.registry import ToolExecutionRecord

LogSink = Callable[[str], None]


class _LineSink:
    """Minimal text stream that hands complete lines to a callback."""

    def __init__(self, sink: LogSink):
        self._sink = sink
        self._pending = ""

    def write(self, text: str) -> int:
        *lines, self._pending = (self._pending + text).split("\n")
        for line in lines:
            if line:
                self._sink(line)
        return len(text)

    def flush(self) -> None:
        if self._pending:
            line, self._pending = self._pending, ""
            self._sink(line)


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(level: str | None = None, sink: LogSink | None = None) -> None:
    """Configure structlog from the ``logging`` config section.

    Args:
        level: Level name overriding ``logging.level`` (``/debug`` toggles it)
        sink: Receives rendered log lines instead of stderr
    """
    settings = get_config().logging
    threshold = getattr(logging, (level or settings.level).upper(), logging.INFO)
    stream: TextIO | _LineSink = _LineSink(sink) if sink else sys.stderr

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(settings.format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name) if name else structlog.get_logger()


log = get_logger(__name__)


def log_tool_execution(record: "ToolExecutionRecord") -> None:
    """Default sink for tool execution records."""
    result = record.result
    fields = {
        "tool": record.tool_name,
        "args": record.arguments,
        "success": result.success,
        "duration_ms": round(record.duration_ms, 2),
    }
    if result.success:
        log.info("Tool execution", **fields)
    else:
        log.error("Tool execution failed", error=result.error, **fields)
