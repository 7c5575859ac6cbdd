"""Custom exceptions for Vibe CLI."""


class VibeError(Exception):
    """Base exception for Vibe CLI."""

    pass


class ConfigurationError(VibeError):
    """Configuration-related errors."""

    pass


class LLMError(VibeError):
    """LLM-related errors."""

    pass


class GatewayError(LLMError):
    """A model query failed; terminal for the query that raised it."""

    pass


class APIRequestError(GatewayError):
    """The request to the model API failed before a response stream was available."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StreamError(GatewayError):
    """The response stream broke or reported an error while being read."""

    pass


class ToolError(VibeError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f'Tool "{tool_name}" not found')
        self.tool_name = tool_name
