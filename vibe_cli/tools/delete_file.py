"""deleteFile tool: delete a single file after confirmation."""

from typing import Any

from vibe_cli.logging import get_logger
from vibe_cli.tools.path_policy import check_delete, resolve_path
from vibe_cli.tools.registry import Tool, ToolResult, confirm_action

log = get_logger(__name__)


class DeleteFileTool(Tool):
    """Delete files."""

    name = "deleteFile"
    description = "Deletes a file with confirmation"
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path of the file to delete",
            },
            "force": {
                "type": "boolean",
                "description": "Delete without asking",
            },
        },
        "required": ["path"],
    }

    async def execute(self, path: str, force: bool = False, **kwargs: Any) -> ToolResult:
        try:
            file_path = resolve_path(path, kwargs.get("_base_path"))

            denied = check_delete(file_path)
            if denied:
                return ToolResult.fail(denied)

            if not file_path.exists():
                return ToolResult.fail(f"File not found: {file_path}")
            if not file_path.is_file():
                return ToolResult.fail(
                    f"Path {file_path} is not a file. To delete directories, use a different tool."
                )

            if force is not True:
                approved = await confirm_action(
                    kwargs.get("_confirm"),
                    f"Are you sure you want to delete the file {file_path}? This action cannot be undone.",
                )
                if not approved:
                    return ToolResult.fail("Operation cancelled by user")

            file_path.unlink()
            return ToolResult.ok({"path": str(file_path), "deleted": True})
        except OSError as e:
            log.error("Delete failed", path=path, error=str(e))
            return ToolResult.fail(f"Error deleting file: {e}")
