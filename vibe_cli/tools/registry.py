"""Tool registry and base tool class."""

import asyncio
import inspect
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError, model_validator

from vibe_cli.exceptions import ToolExecutionError, ToolNotFoundError
from vibe_cli.logging import get_logger, log_tool_execution

log = get_logger(__name__)

ConfirmCallback = Callable[[str], bool | Awaitable[bool]]


class ToolResult(BaseModel):
    """Result from tool execution."""

    success: bool = True
    data: Any = None
    error: str | None = None

    @model_validator(mode="after")
    def _normalize_failure_error(self) -> "ToolResult":
        """Ensure failed results always provide an error message."""
        if not self.success and not (self.error or "").strip():
            self.error = "Tool execution failed"
        return self

    @classmethod
    def ok(cls, data: Any = None) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class ToolExecutionRecord:
    """Observability record for one registry call."""

    tool_name: str
    arguments: dict[str, Any]
    result: ToolResult
    duration_ms: float = 0.0


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {}

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool.

        Args:
            **kwargs: Tool-specific arguments plus the runtime context
                (``_confirm``, ``_base_path``)

        Returns:
            ToolResult with success status and data
        """
        pass

    def get_definition(self) -> dict[str, Any]:
        """Get the tool definition used in prompts and tool catalogs."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Check required arguments against the parameter schema.

        Raises:
            ToolExecutionError if a required argument is missing
        """
        required = self.parameters.get("required", [])
        for name in required:
            if arguments.get(name) in (None, ""):
                raise ToolExecutionError(
                    self.name,
                    f"Missing required argument: {name}",
                )


class FunctionTool(Tool):
    """Tool backed by a plain sync or async callable.

    The callable receives the tool arguments as keyword arguments; runtime
    context (underscore-prefixed keys) is not passed through.
    """

    def __init__(
        self,
        name: str,
        description: str,
        executor: Callable[..., Any],
        parameters: dict[str, Any] | None = None,
    ):
        self.name = name
        self.description = description
        self.parameters = dict(parameters or {})
        self._executor = executor

    async def execute(self, **kwargs: Any) -> Any:
        arguments = {key: value for key, value in kwargs.items() if not key.startswith("_")}
        result = self._executor(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


async def confirm_action(confirm: ConfirmCallback | None, question: str) -> bool:
    """Ask the approval callback; without one the action is allowed."""
    if confirm is None:
        log.warning("Confirmation requested but no callback is configured; allowing", question=question)
        return True
    answer = confirm(question)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


class ToolRegistry:
    """Registry for managing available tools.

    ``execute`` never raises for tool failures: unknown tools, exceptions and
    invalid payloads all come back as failed ``ToolResult`` values. Calls are
    serialized so that tools never observe each other's partial effects.
    """

    def __init__(
        self,
        base_path: Path | str | None = None,
        record_sink: Callable[[ToolExecutionRecord], None] | None = log_tool_execution,
    ):
        self._tools: dict[str, Tool] = {}
        self._runtime_base_path = Path.cwd()
        self._approval_callback: ConfirmCallback | None = None
        self._record_sink = record_sink
        self._lock = asyncio.Lock()
        self.set_runtime_base_path(base_path or Path.cwd())

    def set_runtime_base_path(self, base_path: Path | str) -> None:
        """Set the directory relative tool paths are resolved against."""
        self._runtime_base_path = Path(base_path).expanduser().resolve()

    @property
    def runtime_base_path(self) -> Path:
        return self._runtime_base_path

    def set_approval_callback(self, callback: ConfirmCallback | None) -> None:
        """Set the callback tools use to confirm destructive actions."""
        self._approval_callback = callback

    def set_record_sink(self, sink: Callable[[ToolExecutionRecord], None] | None) -> None:
        self._record_sink = sink

    def register(self, tool: Tool) -> None:
        """Register a tool; an existing tool with the same name is replaced.

        Args:
            tool: Tool instance to register
        """
        if not tool.name:
            raise ValueError("Tool must have a name")

        if tool.name in self._tools:
            log.warning("Tool already registered, overwriting", tool=tool.name)
        else:
            log.debug("Registering tool", tool=tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        """Unregister a tool.

        Args:
            name: Tool name to unregister
        """
        self._tools.pop(name, None)

    def has(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        return name in self._tools

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def list_all(self) -> list[Tool]:
        return list(self._tools.values())

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool definitions for prompts and tool catalogs."""
        return [tool.get_definition() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @staticmethod
    def _coerce_result(name: str, raw: Any) -> ToolResult:
        """Accept ToolResult instances or ``{success, data, error}`` mappings."""
        if isinstance(raw, ToolResult):
            return raw
        if isinstance(raw, dict) and "success" in raw:
            try:
                return ToolResult.model_validate(raw)
            except ValidationError as e:
                raise ToolExecutionError(name, f"Tool returned invalid result payload: {e}") from e
        raise ToolExecutionError(name, "Tool returned invalid result payload")

    async def _invoke(self, tool: Tool, arguments: dict[str, Any]) -> ToolResult:
        tool.validate_arguments(arguments)
        raw = tool.execute(
            **arguments,
            _confirm=self._approval_callback,
            _base_path=self._runtime_base_path,
        )
        if inspect.isawaitable(raw):
            raw = await raw
        return self._coerce_result(tool.name, raw)

    async def execute_with_record(self, name: str, arguments: dict[str, Any] | None = None) -> ToolExecutionRecord:
        """Execute a tool and return the full execution record.

        Args:
            name: Tool name
            arguments: Tool arguments; underscore-prefixed keys are dropped

        Returns:
            ToolExecutionRecord whose result is never an exception
        """
        arguments = {
            str(key): value
            for key, value in (arguments or {}).items()
            if not str(key).startswith("_")
        }

        async with self._lock:
            tool = self._tools.get(name)
            if tool is None:
                record = ToolExecutionRecord(name, arguments, ToolResult.fail(str(ToolNotFoundError(name))))
                log.warning("Unknown tool requested", tool=name)
                self._emit(record)
                return record

            log.info("Executing tool", tool=name, args=arguments)
            started = time.perf_counter()
            try:
                result = await self._invoke(tool, arguments)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                message = str(e) or type(e).__name__
                result = ToolResult.fail(message)
            duration_ms = (time.perf_counter() - started) * 1000

            record = ToolExecutionRecord(name, arguments, result, duration_ms)
            self._emit(record)
            return record

    async def execute(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Execute a tool by name.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            ToolResult from execution; failures are returned, not raised
        """
        record = await self.execute_with_record(name, arguments)
        return record.result

    def _emit(self, record: ToolExecutionRecord) -> None:
        if self._record_sink is None:
            return
        try:
            self._record_sink(record)
        except Exception as e:
            log.warning("Tool record sink failed", tool=record.tool_name, error=str(e))
