"""mkdir tool: create a directory."""

from typing import Any

from vibe_cli.logging import get_logger
from vibe_cli.tools.path_policy import resolve_path
from vibe_cli.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class MakeDirTool(Tool):
    """Create directories; succeeds when the directory already exists."""

    name = "mkdir"
    description = "Creates a directory with optional recursive creation"
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Directory to create",
            },
            "recursive": {
                "type": "boolean",
                "description": "Create missing parent directories (default true)",
            },
        },
        "required": ["path"],
    }

    async def execute(self, path: str, recursive: bool = True, **kwargs: Any) -> ToolResult:
        try:
            dir_path = resolve_path(path, kwargs.get("_base_path"))

            if dir_path.exists():
                if dir_path.is_dir():
                    return ToolResult.ok({"path": str(dir_path)})
                return ToolResult.fail(f"Path {dir_path} exists but is not a directory")

            dir_path.mkdir(parents=recursive is not False)
            return ToolResult.ok({"path": str(dir_path)})
        except OSError as e:
            log.error("Create directory failed", path=path, error=str(e))
            return ToolResult.fail(f"Error creating directory: {e}")
