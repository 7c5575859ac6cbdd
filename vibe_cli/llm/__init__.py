"""Model query gateway: streaming chat completions from Ollama."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Literal, Sequence

import httpx
from pydantic import BaseModel, Field

from vibe_cli.conversation import Message
from vibe_cli.exceptions import APIRequestError, GatewayError, StreamError
from vibe_cli.logging import get_logger

log = get_logger(__name__)


OLLAMA_NATIVE_BASE_URL = "http://localhost:11434"


class QueryOptions(BaseModel):
    """Per-query options for the completion model."""

    model: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    response_format: Literal["text", "json"] = "text"
    tool_catalog: list[dict[str, Any]] = Field(default_factory=list)
    tool_choice: Literal["auto", "forced"] = "auto"


@dataclass(frozen=True)
class StreamChunk:
    """One increment of a streamed response; the last chunk has ``done=True``."""

    content_delta: str
    done: bool = False


class QueryStream:
    """Lazy, single-use sequence of content deltas for one model query.

    Iterating yields ``StreamChunk`` objects in arrival order followed by a
    single ``done`` marker. If the underlying stream fails, the error is raised
    from the iteration and nothing else is yielded.
    """

    def __init__(self, deltas: AsyncIterator[str]):
        self._deltas = deltas
        self._parts: list[str] = []
        self._consumed = False
        self._done = False

    @property
    def text(self) -> str:
        """Text assembled so far (the full response once ``done``)."""
        return "".join(self._parts)

    @property
    def done(self) -> bool:
        return self._done

    def __aiter__(self) -> AsyncIterator[StreamChunk]:
        if self._consumed:
            raise RuntimeError("Query stream already consumed")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamChunk]:
        try:
            async for delta in self._deltas:
                if not delta:
                    continue
                self._parts.append(delta)
                yield StreamChunk(delta)
        finally:
            aclose = getattr(self._deltas, "aclose", None)
            if aclose is not None:
                await aclose()
        self._done = True
        yield StreamChunk("", done=True)

    async def collect(self, on_delta: Callable[[str], None] | None = None) -> str:
        """Consume the stream and return the assembled text."""
        async for chunk in self:
            if chunk.content_delta and on_delta is not None:
                on_delta(chunk.content_delta)
        return self.text


class LLMProvider(ABC):
    """Abstract base class for completion providers."""

    def query(
        self,
        messages: Sequence[Message],
        options: QueryOptions | None = None,
    ) -> QueryStream:
        """Start a query; nothing is sent until the stream is iterated."""
        return QueryStream(self.complete_streaming(tuple(messages), options or QueryOptions()))

    async def complete(
        self,
        messages: Sequence[Message],
        options: QueryOptions | None = None,
    ) -> str:
        """Run a query to completion and return the full text."""
        return await self.query(messages, options).collect()

    @abstractmethod
    def complete_streaming(
        self,
        messages: tuple[Message, ...],
        options: QueryOptions,
    ) -> AsyncIterator[str]:
        """Yield response text deltas; raise ``GatewayError`` on failure."""
        pass

    async def close(self) -> None:
        """Release provider resources."""
        return None


class OllamaProvider(LLMProvider):
    """Direct Ollama chat API provider."""

    def __init__(
        self,
        model: str = "llama3",
        base_url: str = OLLAMA_NATIVE_BASE_URL,
        temperature: float = 0.7,
        top_p: float = 0.9,
        num_ctx: int = 4096,
        timeout: float = 120.0,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Ollama provider.

        Args:
            model: Ollama model name (e.g., 'llama3', 'qwen3:32b')
            base_url: Ollama server URL, with or without a trailing ``/api``
            temperature: Default sampling temperature
            top_p: Default nucleus sampling value
            num_ctx: Context window size requested from the server
            timeout: Network timeout in seconds
            api_key: Optional API key (Ollama usually doesn't need one locally)
            client: Optional preconfigured HTTP client
        """
        self.model = model
        self.base_url = self._normalize_base_url(base_url)
        self.temperature = temperature
        self.top_p = top_p
        self.num_ctx = num_ctx
        self.api_key = api_key

        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    @staticmethod
    def _normalize_base_url(base_url: str) -> str:
        url = (base_url or OLLAMA_NATIVE_BASE_URL).rstrip("/")
        if url.endswith("/api"):
            url = url[: -len("/api")]
        return url

    @staticmethod
    def _convert_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Convert tool catalog entries to Ollama function format."""
        result = []
        for tool in tools:
            name = tool.get("name")
            if not name:
                continue
            result.append({
                "type": "function",
                "function": {
                    "name": name,
                    "description": tool.get("description") or "",
                    "parameters": tool.get("parameters") or {},
                },
            })
        return result

    def build_request(self, messages: tuple[Message, ...], options: QueryOptions) -> dict[str, Any]:
        """Build the JSON body for a streaming chat request."""
        body: dict[str, Any] = {
            "model": options.model or self.model,
            "messages": [message.to_dict() for message in messages],
            "stream": True,
            "options": {
                "num_ctx": self.num_ctx,
                "temperature": options.temperature if options.temperature is not None else self.temperature,
                "top_p": options.top_p if options.top_p is not None else self.top_p,
            },
        }
        if options.response_format == "json":
            body["format"] = "json"
        if options.tool_catalog:
            body["tools"] = self._convert_tools(options.tool_catalog)
            body["tool_choice"] = "required" if options.tool_choice == "forced" else "auto"
        return body

    @staticmethod
    def _render_native_tool_calls(raw_calls: list[Any]) -> str:
        """Render structured tool calls as strict tool_calls JSON text.

        Keeps the response a plain text stream when the server decodes tool
        calls natively instead of writing them into the content.
        """
        calls = []
        for raw in raw_calls:
            function = raw.get("function", {}) if isinstance(raw, dict) else {}
            name = function.get("name")
            if not name:
                continue
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    arguments = {}
            calls.append({"name": name, "parameters": arguments})
        if not calls:
            return ""
        return json.dumps({"tool_calls": calls})

    async def complete_streaming(
        self,
        messages: tuple[Message, ...],
        options: QueryOptions,
    ) -> AsyncIterator[str]:
        """Stream a chat completion as text deltas."""
        url = f"{self.base_url}/api/chat"
        body = self.build_request(messages, options)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        log.debug("Calling Ollama", model=body["model"], url=url, msg_count=len(body["messages"]))

        try:
            async with self.client.stream("POST", url, json=body, headers=headers) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    raise APIRequestError(
                        f"API request failed: Ollama API error {response.status_code}: {error_text}",
                        status_code=response.status_code,
                    )

                received = False
                try:
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            chunk = json.loads(line)
                        except json.JSONDecodeError:
                            log.warning("Skipping unparseable stream line", line=line[:200])
                            continue

                        if chunk.get("error"):
                            raise StreamError(f"Stream error: {chunk['error']}")

                        message = chunk.get("message") or {}
                        content = message.get("content") or ""
                        if message.get("tool_calls"):
                            content += self._render_native_tool_calls(message["tool_calls"])
                        if content:
                            received = True
                            yield content

                        if chunk.get("done"):
                            return
                except httpx.HTTPError as e:
                    raise StreamError(f"Stream error: {e}") from e

                if not received:
                    raise StreamError("Stream ended without response")

        except GatewayError:
            raise
        except httpx.HTTPError as e:
            raise APIRequestError(f"API request failed: {e}") from e
        except Exception as e:
            raise GatewayError(f"Ollama query failed: {e}") from e

    async def list_models(self) -> list[str]:
        """Return model names installed on the Ollama server."""
        try:
            response = await self.client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise APIRequestError(f"API request failed: {e}") from e
        models = response.json().get("models") or []
        return [str(item.get("name", "")) for item in models if isinstance(item, dict)]

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def create_provider(
    provider: str = "ollama",
    model: str = "llama3",
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float = 0.7,
    top_p: float = 0.9,
    num_ctx: int = 4096,
    timeout: float = 120.0,
) -> LLMProvider:
    """Create an LLM provider.

    Args:
        provider: Provider name (only ``ollama`` is supported)
        model: Model name
        api_key: Optional API key
        base_url: Optional base URL
        temperature: Default temperature
        top_p: Default top_p
        num_ctx: Context window size
        timeout: Network timeout in seconds

    Returns:
        Configured LLMProvider instance
    """
    if provider == "ollama":
        return OllamaProvider(
            model=model,
            base_url=base_url or OLLAMA_NATIVE_BASE_URL,
            temperature=temperature,
            top_p=top_p,
            num_ctx=num_ctx,
            timeout=timeout,
            api_key=api_key,
        )
    raise ValueError(f"Provider '{provider}' not supported. Use 'ollama'.")


# Global provider instance
_provider: LLMProvider | None = None


def get_provider() -> LLMProvider:
    """Get the global LLM provider instance."""
    global _provider
    if _provider is None:
        from vibe_cli.config import get_config
        cfg = get_config()
        _provider = create_provider(
            provider=cfg.model.provider,
            model=cfg.model.model,
            base_url=cfg.model.base_url,
            temperature=cfg.model.temperature,
            top_p=cfg.model.top_p,
            num_ctx=cfg.model.num_ctx,
            timeout=cfg.model.timeout,
            api_key=cfg.model.api_key or None,
        )
    return _provider


def set_provider(provider: LLMProvider | None) -> None:
    """Set the global LLM provider instance."""
    global _provider
    _provider = provider
