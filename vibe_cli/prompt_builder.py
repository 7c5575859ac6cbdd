"""System prompt construction for the tool-using agent."""

from typing import Any, Iterable

from vibe_cli.config import AgentConfig
from vibe_cli.instructions import InstructionLoader

PERSONALITY_DESCRIPTIONS: dict[str, str] = {
    "helpful": (
        "You are a helpful AI coding assistant. You provide accurate, useful information "
        "and assistance with coding tasks."
    ),
    "concise": (
        "You are a concise AI coding assistant. You provide brief, to-the-point answers "
        "and solutions. You avoid unnecessary explanations."
    ),
    "detailed": (
        "You are a detailed AI coding assistant. You provide comprehensive explanations "
        "and thorough analyses of code. You include relevant context and educational information."
    ),
    "teaching": (
        "You are a teaching-focused AI coding assistant. You explain concepts thoroughly and "
        "provide educational context. You focus on helping users learn, not just solving "
        "their immediate problem."
    ),
}

VERBOSITY_GUIDELINES: dict[str, str] = {
    "low": "Provide concise responses. Focus on direct answers without elaboration. Use minimal explanations.",
    "medium": (
        "Balance detail and brevity. Provide enough context to be helpful, "
        "but avoid unnecessary verbosity."
    ),
    "high": (
        "Provide detailed explanations with thorough context. Include examples where helpful. "
        "Elaborate on important concepts."
    ),
}

MARKDOWN_GUIDELINES = (
    "Use markdown formatting to enhance your responses. Format code blocks with appropriate "
    "language tags. Use headings, lists, and emphasis to improve readability."
)
PLAIN_GUIDELINES = (
    "Use simple formatting for your responses. Use code blocks for code snippets. "
    "Use clear structure to improve readability."
)


class AgentPromptBuilder:
    """Builds the agent's system message from config, tools and project instructions."""

    def __init__(
        self,
        config: AgentConfig | None = None,
        loader: InstructionLoader | None = None,
    ):
        self.config = config or AgentConfig()
        self.loader = loader or InstructionLoader()
        self.project_instructions: str | None = None

    def set_project_instructions(self, content: str | None) -> None:
        """Attach project instructions (VIBE.md content); empty clears them."""
        self.project_instructions = content.strip() if content and content.strip() else None

    @staticmethod
    def format_tool(definition: dict[str, Any]) -> str:
        lines = [
            f"Tool: {definition.get('name', '')}",
            f"Description: {definition.get('description', '')}",
        ]
        schema = definition.get("parameters") or {}
        properties = schema.get("properties") or {}
        if properties:
            required = set(schema.get("required") or [])
            names = [f"{name} (required)" if name in required else name for name in properties]
            lines.append(f"Parameters: {', '.join(names)}")
        return "\n".join(lines)

    def build_tools_section(self, definitions: Iterable[dict[str, Any]]) -> str:
        return "\n\n".join(self.format_tool(definition) for definition in definitions)

    def build_system_message(self, definitions: Iterable[dict[str, Any]]) -> str:
        """Build the full system message.

        Args:
            definitions: Tool definitions (``ToolRegistry.get_definitions()``)

        Returns:
            System prompt text
        """
        cfg = self.config
        sections = [
            self.loader.render(
                "system_prompt.md",
                personality=PERSONALITY_DESCRIPTIONS.get(cfg.personality, PERSONALITY_DESCRIPTIONS["helpful"]),
                verbosity=VERBOSITY_GUIDELINES.get(cfg.verbosity, VERBOSITY_GUIDELINES["medium"]),
                formatting=MARKDOWN_GUIDELINES if cfg.use_markdown else PLAIN_GUIDELINES,
                tools=self.build_tools_section(definitions) or "(none)",
            )
        ]

        if cfg.include_tool_guidelines:
            sections.append(self.loader.load("tool_guidelines.md"))

        if cfg.custom_instructions.strip():
            sections.append(f"ADDITIONAL INSTRUCTIONS:\n{cfg.custom_instructions.strip()}")

        if self.project_instructions:
            sections.append(
                self.loader.render(
                    "project_instructions.md",
                    filename=cfg.project_instructions_file,
                    content=self.project_instructions,
                )
            )

        return "\n\n".join(sections)

    def build_directed_prompt(self, user_input: str) -> str:
        """User message for the forced-tool escalation query."""
        return self.loader.render("directed_tool_prompt.md", user_input=user_input)

    def build_chat_system_message(self) -> str:
        return self.loader.load("chat_system_prompt.md")
