"""Configuration management for Vibe CLI."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vibe_cli.exceptions import ConfigurationError


# Paths
DEFAULT_CONFIG_PATH = Path("~/.vibe-cli/config.yaml").expanduser()
LOCAL_CONFIG_FILENAME = "config.yaml"


class ModelConfig(BaseModel):
    """Model configuration."""

    provider: str = "ollama"
    model: str = "llama3"
    base_url: str = "http://localhost:11434"
    temperature: float = 0.7
    top_p: float = 0.9
    num_ctx: int = 4096
    timeout: float = 120.0
    api_key: str = ""


class AgentConfig(BaseModel):
    """Agent prompt and tool-loop configuration."""

    personality: Literal["helpful", "concise", "detailed", "teaching"] = "helpful"
    verbosity: Literal["low", "medium", "high"] = "medium"
    use_markdown: bool = True
    include_tool_guidelines: bool = True
    custom_instructions: str = ""
    project_instructions_file: str = "VIBE.md"
    tool_temperature: float = 0.2
    directed_temperature: float = 0.1
    max_tool_calls: int = 10
    escalate_when_no_tool_call: bool = False


class ToolsConfig(BaseModel):
    """Tools configuration."""

    enabled: list[str] = [
        "listDir",
        "readFile",
        "writeFile",
        "createFile",
        "deleteFile",
        "mkdir",
        "moveFile",
        "loadInstructions",
    ]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for Vibe CLI."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="VIBE_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        return cls(**data)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from the default YAML location.

        Environment variables (``VIBE_MODEL__MODEL`` etc.) are applied by
        pydantic-settings for any field the YAML file leaves unset.
        """
        return cls.from_yaml()


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
