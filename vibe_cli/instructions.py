"""Prompt templates for the agent and chat modes.

Templates are markdown files with ``str.format`` placeholders. They are
looked up along a search path, first match wins:

  1. ``~/.vibe-cli/instructions/`` (personal rewording of any prompt)
  2. ``$VIBE_INSTRUCTIONS_DIR`` when set, else the packaged ``prompts/``
"""

import os
from pathlib import Path

PERSONAL_TEMPLATE_DIR = Path("~/.vibe-cli/instructions").expanduser()
PACKAGED_TEMPLATE_DIR = Path(__file__).resolve().parent / "prompts"


class _KeepUnknown(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class InstructionLoader:
    """Find, cache and fill prompt templates."""

    def __init__(
        self,
        base_dir: Path | str | None = None,
        personal_dir: Path | str | None = None,
    ):
        if base_dir is None:
            base_dir = os.getenv("VIBE_INSTRUCTIONS_DIR") or PACKAGED_TEMPLATE_DIR
        self.base_dir = Path(base_dir).expanduser().resolve()
        self.personal_dir = Path(personal_dir or PERSONAL_TEMPLATE_DIR).expanduser().resolve()
        self._cache: dict[str, str] = {}

    @property
    def search_path(self) -> tuple[Path, Path]:
        return (self.personal_dir, self.base_dir)

    def locate(self, name: str) -> Path:
        """Return the file that ``load(name)`` would read.

        Raises:
            FileNotFoundError: no directory on the search path has the template
        """
        for directory in self.search_path:
            candidate = directory / name
            if candidate.is_file():
                return candidate
        searched = ", ".join(str(directory) for directory in self.search_path)
        raise FileNotFoundError(f"Prompt template {name!r} not found (searched {searched})")

    def is_overridden(self, name: str) -> bool:
        return self.locate(name).parent == self.personal_dir

    def load(self, name: str) -> str:
        """Template text with surrounding whitespace stripped."""
        if name not in self._cache:
            self._cache[name] = self.locate(name).read_text(encoding="utf-8").strip()
        return self._cache[name]

    def render(self, name: str, **variables: object) -> str:
        """Fill ``{placeholders}``; unknown ones are left as written."""
        values = _KeepUnknown((key, str(value)) for key, value in variables.items())
        return self.load(name).format_map(values)

    def clear_cache(self) -> None:
        self._cache.clear()
