"""writeFile tool: write content to a file, confirming overwrites."""

import json
from typing import Any

from vibe_cli.exceptions import ToolExecutionError
from vibe_cli.logging import get_logger
from vibe_cli.tools.path_policy import check_access, resolve_path
from vibe_cli.tools.registry import Tool, ToolResult, confirm_action

log = get_logger(__name__)


class WriteFileTool(Tool):
    """Write content to files."""

    name = "writeFile"
    description = "Writes content to a file with overwrite confirmation"
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the file to write",
            },
            "content": {
                "type": "string",
                "description": "Content to write to the file",
            },
            "encoding": {
                "type": "string",
                "description": "Text encoding (default utf-8)",
            },
            "force": {
                "type": "boolean",
                "description": "Overwrite an existing file without asking",
            },
        },
        "required": ["path", "content"],
    }

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        # Empty content is a valid write
        if not arguments.get("path"):
            raise ToolExecutionError(self.name, "Missing required argument: path")
        if arguments.get("content") is None:
            raise ToolExecutionError(self.name, "Missing required argument: content")

    async def execute(
        self,
        path: str,
        content: Any,
        encoding: str = "utf-8",
        force: bool = False,
        **kwargs: Any,
    ) -> ToolResult:
        """Write a file.

        Args:
            path: Path to file
            content: Text to write; other values are written as JSON
            encoding: Text encoding
            force: Skip the overwrite confirmation

        Returns:
            ToolResult with ``path``, ``overwritten`` and ``bytes_written``
        """
        try:
            file_path = resolve_path(path, kwargs.get("_base_path"))

            denied = check_access(file_path, "write to")
            if denied:
                return ToolResult.fail(denied)

            overwritten = file_path.is_file()
            if overwritten and force is not True:
                approved = await confirm_action(
                    kwargs.get("_confirm"),
                    f"File {file_path} already exists. Overwrite?",
                )
                if not approved:
                    return ToolResult.fail("Operation cancelled by user")

            text = content if isinstance(content, str) else json.dumps(content)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(text, encoding=encoding)

            return ToolResult.ok({
                "path": str(file_path),
                "overwritten": overwritten,
                "bytes_written": file_path.stat().st_size,
            })
        except (OSError, LookupError, TypeError, ValueError) as e:
            log.error("Write failed", path=path, error=str(e))
            return ToolResult.fail(f"Error writing file: {e}")
