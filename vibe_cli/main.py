"""Main entry point for Vibe CLI."""

import asyncio
import sys
from pathlib import Path

import typer
import yaml
from pydantic import ValidationError

from vibe_cli import __version__
from vibe_cli.agent import Agent, ChatSession
from vibe_cli.cli import TerminalUI, get_ui
from vibe_cli.config import Config, set_config
from vibe_cli.conversation import Message
from vibe_cli.exceptions import ConfigurationError, GatewayError
from vibe_cli.llm import OllamaProvider, get_provider
from vibe_cli.logging import LogSink, configure_logging, log
from vibe_cli.prompt_builder import AgentPromptBuilder
from vibe_cli.tools import build_default_registry

app = typer.Typer(help="Vibe CLI - a terminal coding assistant for local Ollama models")

CONNECTION_TEST_MESSAGES = (
    Message("system", "You are a helpful assistant."),
    Message("user", "Respond with a very short message to test connectivity."),
)


def load_config(
    config_path: str = "",
    model: str = "",
    debug: bool = False,
    log_sink: LogSink | None = None,
) -> Config:
    """Load configuration, apply CLI overrides and configure logging."""
    try:
        cfg = Config.from_yaml(Path(config_path)) if config_path else Config.load()
    except (OSError, yaml.YAMLError, ValidationError) as e:
        raise ConfigurationError(f"Failed to load config: {e}") from e

    if model:
        cfg.model.model = model
    if debug:
        cfg.logging.level = "DEBUG"

    set_config(cfg)
    configure_logging(sink=log_sink)
    return cfg


def _read_input(ui: TerminalUI) -> str | None:
    try:
        return ui.prompt()
    except (EOFError, KeyboardInterrupt):
        return None


def run_agent_repl(cfg: Config, ui: TerminalUI, force_tools: bool = False) -> None:
    """Interactive agent loop with tools."""
    with asyncio.Runner() as runner:
        provider = get_provider()
        registry = build_default_registry(cfg.tools.enabled)
        registry.set_approval_callback(ui.confirm)
        agent = Agent(
            provider,
            registry,
            prompt_builder=AgentPromptBuilder(cfg.agent),
            delta_callback=ui.print_streaming,
            status_callback=ui.set_runtime_status,
            tool_output_callback=ui.print_tool_result,
            config=cfg.agent,
        )
        try:
            runner.run(agent.load_project_instructions())
            ui.print_welcome("agent", cfg.model.model)

            while True:
                raw = _read_input(ui)
                if raw is None:
                    break
                command = ui.handle_special_command(raw)
                if command is None or not command:
                    continue
                if command == "EXIT":
                    break
                if command == "CLEAR":
                    agent.reset()
                    ui.print_success("Conversation cleared")
                    continue
                if command == "TOOLS":
                    ui.print_tools(registry.get_definitions())
                    continue
                if command == "DEBUG":
                    enabled = ui.toggle_debug()
                    configure_logging("DEBUG" if enabled else None, sink=ui.print_log_line)
                    ui.print_success(f"Debug {'on' if enabled else 'off'}")
                    continue

                ui.begin_assistant_stream()
                try:
                    outcome = runner.run(agent.complete(command, expect_tool=True if force_tools else None))
                except KeyboardInterrupt:
                    ui.end_assistant_stream()
                    ui.print_warning("Interrupted")
                    continue
                ui.end_assistant_stream()
                if outcome.failed:
                    ui.print_error(outcome.text)
        finally:
            runner.run(provider.close())


def run_chat_repl(cfg: Config, ui: TerminalUI) -> None:
    """Interactive chat loop without tools."""
    with asyncio.Runner() as runner:
        provider = get_provider()
        session = ChatSession(
            provider,
            prompt_builder=AgentPromptBuilder(cfg.agent),
            delta_callback=ui.print_streaming,
        )
        try:
            ui.print_welcome("chat", cfg.model.model)
            while True:
                raw = _read_input(ui)
                if raw is None:
                    break
                command = ui.handle_special_command(raw)
                if command is None or not command:
                    continue
                if command == "EXIT":
                    break
                if command == "CLEAR":
                    session.reset()
                    ui.print_success("Conversation cleared")
                    continue
                if command in ("TOOLS", "DEBUG"):
                    ui.print_warning("Not available in chat mode")
                    continue

                ui.begin_assistant_stream()
                try:
                    outcome = runner.run(session.send(command))
                except KeyboardInterrupt:
                    ui.end_assistant_stream()
                    ui.print_warning("Interrupted")
                    continue
                ui.end_assistant_stream()
                if outcome.failed:
                    ui.print_error(outcome.text)
        finally:
            runner.run(provider.close())


@app.command()
def agent(
    personality: str = typer.Option("", "--personality", help="helpful, concise, detailed or teaching"),
    verbosity: str = typer.Option("", "--verbosity", help="low, medium or high"),
    markdown: bool | None = typer.Option(None, "--markdown/--no-markdown", help="Ask for markdown output"),
    force_tools: bool = typer.Option(False, "--force-tools", help="Escalate when a reply uses no tool"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging"),
) -> None:
    """Start an interactive agent session with filesystem tools."""
    ui = get_ui()
    try:
        cfg = load_config(config, model, debug, log_sink=ui.print_log_line)
        updates = {}
        if personality:
            updates["personality"] = personality
        if verbosity:
            updates["verbosity"] = verbosity
        if markdown is not None:
            updates["use_markdown"] = markdown
        if updates:
            cfg.agent = cfg.agent.model_validate({**cfg.agent.model_dump(), **updates})
    except (ConfigurationError, ValidationError) as e:
        ui.print_error(str(e))
        raise typer.Exit(code=1)

    ui.debug = debug
    try:
        run_agent_repl(cfg, ui, force_tools=force_tools)
    except KeyboardInterrupt:
        log.info("Shutting down...")
        sys.exit(0)


@app.command()
def chat(
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging"),
) -> None:
    """Start a plain chat session without tools."""
    ui = get_ui()
    try:
        cfg = load_config(config, model, debug, log_sink=ui.print_log_line)
    except ConfigurationError as e:
        ui.print_error(str(e))
        raise typer.Exit(code=1)

    try:
        run_chat_repl(cfg, ui)
    except KeyboardInterrupt:
        log.info("Shutting down...")
        sys.exit(0)


@app.command("config")
def show_config(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """Print the effective configuration."""
    ui = get_ui()
    try:
        cfg = load_config(config)
    except ConfigurationError as e:
        ui.print_error(str(e))
        raise typer.Exit(code=1)
    source = Path(config).expanduser() if config else Config.resolve_default_config_path()
    ui.print_config(cfg.model_dump(), source=source)


@app.command()
def query(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """Send a one-off query and stream the answer."""
    ui = get_ui()
    try:
        cfg = load_config(config, model, log_sink=ui.print_log_line)
    except ConfigurationError as e:
        ui.print_error(str(e))
        raise typer.Exit(code=1)

    messages = (
        Message("system", AgentPromptBuilder(cfg.agent).build_chat_system_message()),
        Message("user", prompt),
    )

    async def _stream() -> None:
        provider = get_provider()
        try:
            await provider.query(messages).collect(ui.print_streaming)
        finally:
            await provider.close()

    ui.begin_assistant_stream()
    try:
        asyncio.run(_stream())
    except GatewayError as e:
        ui.end_assistant_stream()
        ui.print_error(str(e))
        raise typer.Exit(code=1)
    ui.end_assistant_stream()


@app.command("test-connection")
def check_connection(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """Check that the configured Ollama server answers."""
    ui = get_ui()
    try:
        cfg = load_config(config, log_sink=ui.print_log_line)
    except ConfigurationError as e:
        ui.print_error(str(e))
        raise typer.Exit(code=1)

    ui.console.print(f"API URL: {cfg.model.base_url}", markup=False)
    ui.console.print(f"Model: {cfg.model.model}", markup=False)

    async def _check() -> str:
        provider = get_provider()
        try:
            if isinstance(provider, OllamaProvider):
                installed = await provider.list_models()
                if not {cfg.model.model, f"{cfg.model.model}:latest"} & set(installed):
                    ui.print_warning(f"Model {cfg.model.model} is not installed on the server")
            return await provider.complete(CONNECTION_TEST_MESSAGES)
        finally:
            await provider.close()

    try:
        reply = asyncio.run(_check())
    except GatewayError as e:
        ui.print_error(f"Connection test failed: {e}")
        raise typer.Exit(code=1)
    ui.console.print(f"Response: {reply.strip()}", markup=False)
    ui.print_success("Connection test successful")


@app.command()
def version() -> None:
    """Show version information."""
    print(f"Vibe CLI v{__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
