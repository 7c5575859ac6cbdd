"""Terminal UI for Vibe CLI."""

import atexit
import json
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from vibe_cli.logging import get_logger

log = get_logger(__name__)

HISTORY_FILE = Path("~/.vibe-cli/history").expanduser()


class TerminalUI:
    """Line-oriented terminal UI on top of a rich console."""

    def __init__(self, console: Console | None = None, history_file: Path | None = HISTORY_FILE):
        self.console = console or Console(highlight=False)
        self.debug = False
        self._special_commands = ["/help", "/tools", "/clear", "/debug", "/exit", "/quit"]
        self._history_file = history_file
        self._readline = None
        self._assistant_output_active = False
        self._setup_readline()

    def _setup_readline(self) -> None:
        """Set up line editing, history, and command completion."""
        if self._history_file is None:
            return
        try:
            import readline
        except ImportError:
            return

        self._readline = readline
        try:
            self._history_file.parent.mkdir(parents=True, exist_ok=True)
            if self._history_file.exists():
                readline.read_history_file(str(self._history_file))
            readline.set_history_length(1000)
            readline.parse_and_bind("tab: complete")
            readline.set_completer(self._complete_special_command)
            atexit.register(self._save_history)
        except OSError as e:
            log.debug("Readline setup failed", error=str(e))

    def _save_history(self) -> None:
        """Persist readline history to disk."""
        if self._readline is None or self._history_file is None:
            return
        try:
            self._readline.write_history_file(str(self._history_file))
        except OSError as e:
            log.debug("Failed to save history", error=str(e))

    def _complete_special_command(self, text: str, state: int) -> str | None:
        """Readline completer for slash commands."""
        if not text.startswith("/"):
            return None
        matches = [cmd for cmd in self._special_commands if cmd.startswith(text)]
        if state < len(matches):
            return matches[state]
        return None

    def print_welcome(self, mode: str, model: str) -> None:
        title = "Vibe CLI agent" if mode == "agent" else "Vibe CLI chat"
        self.console.print(
            Panel.fit(
                f"[bold]{title}[/bold]  model: [cyan]{escape(model)}[/cyan]\n"
                "Type your message, '/help' for commands, '/exit' to quit.",
            )
        )

    def print_help(self) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_row("/help", "Show this help message")
        table.add_row("/tools", "List available tools")
        table.add_row("/clear", "Clear the conversation (keeps the system prompt)")
        table.add_row("/debug", "Toggle debug output")
        table.add_row("/exit", "Quit")
        self.console.print(table)

    def print_tools(self, definitions: list[dict[str, Any]]) -> None:
        if not definitions:
            self.print_warning("No tools available")
            return
        table = Table(title="Tools")
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        for definition in definitions:
            table.add_row(str(definition.get("name", "")), str(definition.get("description", "")))
        self.console.print(table)

    def print_config(self, data: dict[str, Any], source: Path | None = None) -> None:
        if source is not None:
            self.console.print(f"[dim]# {source}{'' if source.exists() else ' (not found, using defaults)'}[/dim]")
        self.console.print(yaml.safe_dump(data, sort_keys=False), markup=False)

    def print_error(self, error: str) -> None:
        self.console.print(f"[red]Error:[/red] {escape(error)}")

    def print_warning(self, warning: str) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]OK:[/green] {escape(message)}")

    def print_log_line(self, line: str) -> None:
        """Log sink: keeps log output on its own line while a reply streams."""
        if self._assistant_output_active:
            self.console.out("")
        self.console.print(line, style="dim", markup=False, highlight=False)

    def begin_assistant_stream(self) -> None:
        self._assistant_output_active = True

    def print_streaming(self, chunk: str) -> None:
        """Print a streamed response chunk as-is."""
        self.console.out(chunk, end="", highlight=False)

    def end_assistant_stream(self) -> None:
        if not self._assistant_output_active:
            return
        self._assistant_output_active = False
        self.console.out("")

    def print_tool_result(self, tool_name: str, arguments: dict[str, Any], output: str) -> None:
        """Show a tool invocation and the feedback sent back to the model."""
        self.console.out("")
        self.console.print(f"[magenta]\\[TOOL][/magenta] {escape(tool_name)} {escape(json.dumps(arguments, ensure_ascii=False))}")
        preview = output if len(output) <= 200 else output[:200] + "..."
        self.console.print(preview, style="dim", markup=False)

    def set_runtime_status(self, status: str) -> None:
        if self.debug:
            self.console.print(f"[dim]\\[state] {status}[/dim]")

    def toggle_debug(self) -> bool:
        self.debug = not self.debug
        return self.debug

    def prompt(self, prompt_text: str = "> ") -> str:
        """Prompt for input."""
        return self.console.input(f"[bold green]{prompt_text}[/bold green]")

    def confirm(self, message: str) -> bool:
        """Ask for confirmation."""
        return Confirm.ask(message, console=self.console, default=False)

    def handle_special_command(self, cmd: str) -> str | None:
        """Map slash commands to actions.

        Returns:
            The input unchanged when it is not a command, an action token
            (``CLEAR``, ``TOOLS``, ``DEBUG``, ``EXIT``) or None when the
            command was fully handled here
        """
        cmd = cmd.strip()
        if cmd.lower() in ("exit", "quit"):
            return "EXIT"
        if not cmd.startswith("/"):
            return cmd

        command = cmd.split(None, 1)[0].lower()
        if command in ("/help", "/h", "/?"):
            self.print_help()
            return None
        elif command == "/clear":
            return "CLEAR"
        elif command == "/tools":
            return "TOOLS"
        elif command == "/debug":
            return "DEBUG"
        elif command in ("/exit", "/quit", "/q"):
            return "EXIT"
        else:
            self.print_error(f"Unknown command: {command}")
            return None


# Global UI instance
_ui: "TerminalUI | None" = None


def get_ui() -> TerminalUI:
    """Get the global UI instance."""
    global _ui
    if _ui is None:
        _ui = TerminalUI()
    return _ui


def set_ui(ui: TerminalUI) -> None:
    """Set the global UI instance."""
    global _ui
    _ui = ui
