"""createFile tool: create a new file; never touches existing ones."""

from typing import Any

from vibe_cli.logging import get_logger
from vibe_cli.tools.path_policy import check_access, resolve_path
from vibe_cli.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class CreateFileTool(Tool):
    """Create new files."""

    name = "createFile"
    description = "Creates a new file with optional initial content"
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path of the file to create",
            },
            "content": {
                "type": "string",
                "description": "Initial content (optional)",
            },
            "encoding": {
                "type": "string",
                "description": "Text encoding (default utf-8)",
            },
        },
        "required": ["path"],
    }

    async def execute(
        self,
        path: str,
        content: str | None = None,
        encoding: str = "utf-8",
        **kwargs: Any,
    ) -> ToolResult:
        try:
            file_path = resolve_path(path, kwargs.get("_base_path"))

            denied = check_access(file_path, "create")
            if denied:
                return ToolResult.fail(denied)

            if file_path.exists():
                return ToolResult.fail(
                    f"File {file_path} already exists. Use writeFile tool to modify existing files."
                )

            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content or "", encoding=encoding)

            return ToolResult.ok({
                "path": str(file_path),
                "created": True,
                "bytes_written": file_path.stat().st_size if content else None,
            })
        except (OSError, LookupError) as e:
            log.error("Create failed", path=path, error=str(e))
            return ToolResult.fail(f"Error creating file: {e}")
