"""moveFile tool: move or rename a file or directory."""

import os
from typing import Any

from vibe_cli.logging import get_logger
from vibe_cli.tools.path_policy import resolve_path
from vibe_cli.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class MoveFileTool(Tool):
    """Move or rename files and directories."""

    name = "moveFile"
    description = "Moves or renames a file or directory with collision detection"
    parameters = {
        "type": "object",
        "properties": {
            "source": {
                "type": "string",
                "description": "Existing file or directory",
            },
            "destination": {
                "type": "string",
                "description": "New location",
            },
            "overwrite": {
                "type": "boolean",
                "description": "Replace an existing destination",
            },
        },
        "required": ["source", "destination"],
    }

    async def execute(
        self,
        source: str,
        destination: str,
        overwrite: bool = False,
        **kwargs: Any,
    ) -> ToolResult:
        try:
            base_path = kwargs.get("_base_path")
            source_path = resolve_path(source, base_path)
            destination_path = resolve_path(destination, base_path)

            if not source_path.exists():
                return ToolResult.fail(f"Source not found: {source_path}")

            if destination_path.exists() and not overwrite:
                return ToolResult.fail(
                    f"Destination already exists: {destination_path}. Use overwrite: true to replace it."
                )

            destination_path.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source_path, destination_path)

            return ToolResult.ok({
                "source": str(source_path),
                "destination": str(destination_path),
            })
        except OSError as e:
            log.error("Move failed", source=source, destination=destination, error=str(e))
            return ToolResult.fail(f"Error moving file: {e}")
