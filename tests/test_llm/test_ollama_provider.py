import json

import httpx
import pytest

from vibe_cli.conversation import Message
from vibe_cli.exceptions import APIRequestError, GatewayError, StreamError
from vibe_cli.llm import OllamaProvider, QueryOptions, QueryStream


def _ndjson(*chunks: dict) -> bytes:
    return "\n".join(json.dumps(chunk) for chunk in chunks).encode("utf-8") + b"\n"


class DummyServer:
    """Records requests and answers with a canned response."""

    def __init__(self, response: httpx.Response | Exception):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


def _provider(server: DummyServer, **kwargs) -> OllamaProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return OllamaProvider(model="llama3", client=client, **kwargs)


MESSAGES = (Message("system", "be brief"), Message("user", "hi"))


@pytest.mark.asyncio
async def test_stream_yields_deltas_then_done_marker():
    server = DummyServer(httpx.Response(200, content=_ndjson(
        {"message": {"role": "assistant", "content": "Hel"}, "done": False},
        {"message": {"role": "assistant", "content": "lo"}, "done": False},
        {"message": {"role": "assistant", "content": ""}, "done": True},
    )))
    provider = _provider(server)

    stream = provider.query(MESSAGES)
    chunks = [chunk async for chunk in stream]

    assert [chunk.content_delta for chunk in chunks] == ["Hel", "lo", ""]
    assert [chunk.done for chunk in chunks] == [False, False, True]
    assert stream.text == "Hello"
    assert stream.done is True
    assert server.requests[0].url == "http://localhost:11434/api/chat"


@pytest.mark.asyncio
async def test_request_body_carries_messages_and_options():
    server = DummyServer(httpx.Response(200, content=_ndjson(
        {"message": {"content": "ok"}, "done": True},
    )))
    provider = _provider(server, temperature=0.7, top_p=0.9, num_ctx=2048)

    await provider.complete(MESSAGES, QueryOptions(temperature=0.2))

    body = server.last_body
    assert body["model"] == "llama3"
    assert body["stream"] is True
    assert body["messages"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "hi"},
    ]
    assert body["options"] == {"num_ctx": 2048, "temperature": 0.2, "top_p": 0.9}
    assert "format" not in body
    assert "tools" not in body


@pytest.mark.asyncio
async def test_directed_options_request_json_and_forced_tools():
    server = DummyServer(httpx.Response(200, content=_ndjson(
        {"message": {"content": "{}"}, "done": True},
    )))
    provider = _provider(server)
    catalog = [{"name": "listDir", "description": "List", "parameters": {"type": "object"}}]

    await provider.complete(
        MESSAGES,
        QueryOptions(response_format="json", tool_catalog=catalog, tool_choice="forced", model="mistral"),
    )

    body = server.last_body
    assert body["model"] == "mistral"
    assert body["format"] == "json"
    assert body["tool_choice"] == "required"
    assert body["tools"] == [{
        "type": "function",
        "function": {"name": "listDir", "description": "List", "parameters": {"type": "object"}},
    }]


@pytest.mark.asyncio
async def test_native_tool_calls_are_rendered_as_text():
    server = DummyServer(httpx.Response(200, content=_ndjson({
        "message": {
            "content": "",
            "tool_calls": [{"function": {"name": "readFile", "arguments": {"path": "a.txt"}}}],
        },
        "done": True,
    })))
    provider = _provider(server)

    text = await provider.complete(MESSAGES)

    assert json.loads(text) == {"tool_calls": [{"name": "readFile", "parameters": {"path": "a.txt"}}]}


@pytest.mark.asyncio
async def test_error_line_raises_stream_error_after_partial_text():
    server = DummyServer(httpx.Response(200, content=_ndjson(
        {"message": {"content": "par"}, "done": False},
        {"error": "model crashed"},
    )))
    provider = _provider(server)
    received: list[str] = []

    with pytest.raises(StreamError, match="model crashed"):
        await provider.query(MESSAGES).collect(received.append)

    assert received == ["par"]


@pytest.mark.asyncio
async def test_http_error_status_raises_api_request_error():
    server = DummyServer(httpx.Response(500, text="boom"))
    provider = _provider(server)

    with pytest.raises(APIRequestError) as exc_info:
        await provider.complete(MESSAGES)

    assert exc_info.value.status_code == 500
    assert "Ollama API error 500: boom" in str(exc_info.value)


@pytest.mark.asyncio
async def test_connection_failure_raises_api_request_error():
    server = DummyServer(httpx.ConnectError("connection refused"))
    provider = _provider(server)

    with pytest.raises(APIRequestError) as exc_info:
        await provider.complete(MESSAGES)

    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value, GatewayError)


@pytest.mark.asyncio
async def test_unparseable_lines_are_skipped():
    content = b"not json\n" + _ndjson({"message": {"content": "fine"}, "done": True})
    provider = _provider(DummyServer(httpx.Response(200, content=content)))

    assert await provider.complete(MESSAGES) == "fine"


@pytest.mark.asyncio
async def test_stream_without_done_marker_keeps_text():
    provider = _provider(DummyServer(httpx.Response(200, content=_ndjson(
        {"message": {"content": "partial"}, "done": False},
    ))))

    assert await provider.complete(MESSAGES) == "partial"


@pytest.mark.asyncio
async def test_empty_stream_raises_stream_error():
    provider = _provider(DummyServer(httpx.Response(200, content=b"")))

    with pytest.raises(StreamError, match="Stream ended without response"):
        await provider.complete(MESSAGES)


@pytest.mark.asyncio
async def test_query_stream_is_single_use():
    async def deltas():
        yield "a"
        yield ""
        yield "b"

    stream = QueryStream(deltas())

    assert await stream.collect() == "ab"
    with pytest.raises(RuntimeError, match="already consumed"):
        await stream.collect()


@pytest.mark.asyncio
async def test_query_is_lazy_until_iterated():
    server = DummyServer(httpx.Response(200, content=_ndjson({"message": {"content": "x"}, "done": True})))
    provider = _provider(server)

    stream = provider.query(MESSAGES)
    assert server.requests == []

    await stream.collect()
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_list_models_reads_tags():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": [{"name": "llama3:latest"}, {"name": "qwen2.5"}]})

    provider = OllamaProvider(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    assert await provider.list_models() == ["llama3:latest", "qwen2.5"]
    await provider.close()
