"""readFile tool: read a text file."""

from typing import Any

from vibe_cli.logging import get_logger
from vibe_cli.tools.path_policy import check_access, resolve_path
from vibe_cli.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class ReadFileTool(Tool):
    """Read file contents."""

    name = "readFile"
    description = "Reads the content of a file"
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the file to read",
            },
            "encoding": {
                "type": "string",
                "description": "Text encoding (default utf-8)",
            },
        },
        "required": ["path"],
    }

    async def execute(self, path: str, encoding: str = "utf-8", **kwargs: Any) -> ToolResult:
        """Read a file.

        Args:
            path: Path to file
            encoding: Text encoding

        Returns:
            ToolResult with ``path``, ``content`` and ``encoding``
        """
        try:
            file_path = resolve_path(path, kwargs.get("_base_path"))

            denied = check_access(file_path, "read")
            if denied:
                return ToolResult.fail(denied)

            if not file_path.exists():
                return ToolResult.fail(f"File not found: {file_path}")
            if not file_path.is_file():
                return ToolResult.fail(f"Path {file_path} is not a file")

            content = file_path.read_text(encoding=encoding)
            return ToolResult.ok({
                "path": str(file_path),
                "content": content,
                "encoding": encoding,
            })
        except (OSError, UnicodeDecodeError, LookupError) as e:
            log.error("Read failed", path=path, error=str(e))
            return ToolResult.fail(f"Error reading file: {e}")
