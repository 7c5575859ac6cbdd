"""Tools package for Vibe CLI."""

from pathlib import Path

from vibe_cli.tools.create_file import CreateFileTool
from vibe_cli.tools.delete_file import DeleteFileTool
from vibe_cli.tools.list_dir import ListDirTool
from vibe_cli.tools.load_instructions import LoadInstructionsTool
from vibe_cli.tools.mkdir import MakeDirTool
from vibe_cli.tools.move_file import MoveFileTool
from vibe_cli.tools.read_file import ReadFileTool
from vibe_cli.tools.registry import (
    FunctionTool,
    Tool,
    ToolExecutionRecord,
    ToolRegistry,
    ToolResult,
)
from vibe_cli.tools.write_file import WriteFileTool

FILESYSTEM_TOOLS: tuple[type[Tool], ...] = (
    ListDirTool,
    ReadFileTool,
    WriteFileTool,
    CreateFileTool,
    DeleteFileTool,
    MakeDirTool,
    MoveFileTool,
    LoadInstructionsTool,
)


def build_default_registry(
    enabled: list[str] | None = None,
    base_path: Path | str | None = None,
) -> ToolRegistry:
    """Create a registry holding the built-in filesystem tools.

    Args:
        enabled: Tool names to register; all built-in tools when None
        base_path: Directory relative tool paths resolve against
    """
    registry = ToolRegistry(base_path=base_path)
    for tool_class in FILESYSTEM_TOOLS:
        if enabled is None or tool_class.name in enabled:
            registry.register(tool_class())
    return registry


__all__ = [
    "FILESYSTEM_TOOLS",
    "FunctionTool",
    "Tool",
    "ToolExecutionRecord",
    "ToolRegistry",
    "ToolResult",
    "build_default_registry",
    "CreateFileTool",
    "DeleteFileTool",
    "ListDirTool",
    "LoadInstructionsTool",
    "MakeDirTool",
    "MoveFileTool",
    "ReadFileTool",
    "WriteFileTool",
]
