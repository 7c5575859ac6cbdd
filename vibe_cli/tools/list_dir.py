"""listDir tool: list the files and directories in a directory."""

from typing import Any

from vibe_cli.logging import get_logger
from vibe_cli.tools.path_policy import resolve_path
from vibe_cli.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class ListDirTool(Tool):
    """List the entries of a directory."""

    name = "listDir"
    description = "Lists files and directories in a directory"
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Directory to list",
            },
        },
        "required": ["path"],
    }

    async def execute(self, path: str, **kwargs: Any) -> ToolResult:
        try:
            dir_path = resolve_path(path, kwargs.get("_base_path"))
            if not dir_path.exists():
                return ToolResult.fail(f"Directory not found: {dir_path}")
            if not dir_path.is_dir():
                return ToolResult.fail(f"Path {dir_path} is not a directory")

            files: list[str] = []
            directories: list[str] = []
            for entry in sorted(dir_path.iterdir(), key=lambda item: item.name):
                if entry.is_dir():
                    directories.append(entry.name)
                elif entry.is_file():
                    files.append(entry.name)

            return ToolResult.ok({
                "path": str(dir_path),
                "files": files,
                "directories": directories,
            })
        except OSError as e:
            log.error("List directory failed", path=path, error=str(e))
            return ToolResult.fail(f"Error listing directory: {e}")
