"""Vibe CLI - a terminal coding assistant for local Ollama models."""

__version__ = "0.1.0"

from vibe_cli.config import Config
from vibe_cli.main import main

__all__ = ["Config", "main", "__version__"]
