"""loadInstructions tool: read the project instructions file."""

from typing import Any

from vibe_cli.logging import get_logger
from vibe_cli.tools.path_policy import resolve_path
from vibe_cli.tools.registry import Tool, ToolResult

log = get_logger(__name__)

DEFAULT_INSTRUCTIONS_FILE = "VIBE.md"


class LoadInstructionsTool(Tool):
    """Load project instructions; a missing file is not an error."""

    name = "loadInstructions"
    description = "Loads project instructions from VIBE.md file"
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Instructions file (default VIBE.md)",
            },
        },
    }

    async def execute(self, path: str | None = None, **kwargs: Any) -> ToolResult:
        try:
            file_path = resolve_path(path or DEFAULT_INSTRUCTIONS_FILE, kwargs.get("_base_path"))
            if not file_path.is_file():
                return ToolResult.ok({"path": str(file_path), "content": "", "found": False})

            return ToolResult.ok({
                "path": str(file_path),
                "content": file_path.read_text(encoding="utf-8"),
                "found": True,
            })
        except (OSError, UnicodeDecodeError) as e:
            log.error("Load instructions failed", path=path, error=str(e))
            return ToolResult.fail(f"Error loading instructions: {e}")
