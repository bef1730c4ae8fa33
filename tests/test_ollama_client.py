"""
Tests for the Ollama client using httpx.MockTransport.
"""

import json

import httpx
import pytest

from termalime.exceptions import MalformedResponseError, TransportError
from termalime.services.ollama_client import NdjsonLineBuffer, OllamaClient

BASE_URL = "http://ollama.test"


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in the given pieces"""

    def __init__(self, chunks):
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


def make_client(handler) -> OllamaClient:
    return OllamaClient(base_url=BASE_URL, timeout=5, transport=httpx.MockTransport(handler))


async def collect(client: OllamaClient, messages=None, model="llama3"):
    return [chunk async for chunk in client.stream_chat(messages or [], model)]


class TestNdjsonLineBuffer:
    def test_holds_partial_lines(self):
        buffer = NdjsonLineBuffer()

        assert buffer.feed(b'{"a": ') == []
        assert buffer.feed(b'1}\n{"b": 2}\n') == [{"a": 1}, {"b": 2}]

    def test_skips_blank_lines(self):
        assert NdjsonLineBuffer().feed(b'\n  \n{"a": 1}\n\n') == [{"a": 1}]

    def test_flush_parses_unterminated_tail(self):
        buffer = NdjsonLineBuffer()
        buffer.feed(b'{"done": true}')

        assert buffer.flush() == [{"done": True}]
        assert buffer.flush() == []

    def test_multibyte_character_split_across_chunks(self):
        buffer = NdjsonLineBuffer()
        encoded = json.dumps({"content": "héllo"}, ensure_ascii=False).encode() + b"\n"
        split = encoded.index("é".encode()) + 1

        assert buffer.feed(encoded[:split]) == []
        assert buffer.feed(encoded[split:]) == [{"content": "héllo"}]

    def test_malformed_line_raises(self):
        with pytest.raises(MalformedResponseError):
            NdjsonLineBuffer().feed(b"not json\n")

    def test_non_object_line_raises(self):
        with pytest.raises(MalformedResponseError):
            NdjsonLineBuffer().feed(b"[1, 2]\n")


class TestChat:
    """Non-streaming chat"""

    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "hi"}, "done": True})

        reply = await make_client(handler).chat([{"role": "user", "content": "hello"}], "llama3")

        assert reply.content == "hi"
        assert reply.model == "llama3"
        assert seen["path"] == "/api/chat"
        assert seen["body"] == {
            "model": "llama3",
            "messages": [{"role": "user", "content": "hello"}],
            "stream": False,
        }

    async def test_non_success_status(self):
        client = make_client(lambda request: httpx.Response(500, text="model crashed"))

        with pytest.raises(TransportError) as exc_info:
            await client.chat([], "llama3")

        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "Ollama responded with 500: model crashed"

    async def test_empty_error_body(self):
        client = make_client(lambda request: httpx.Response(503))

        with pytest.raises(TransportError, match=r"^Ollama responded with 503$"):
            await client.chat([], "llama3")

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(TransportError, match="Cannot connect to Ollama"):
            await make_client(handler).chat([], "llama3")

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow")

        with pytest.raises(TransportError, match="timed out"):
            await make_client(handler).chat([], "llama3")

    async def test_invalid_json_body(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(MalformedResponseError):
            await client.chat([], "llama3")

    async def test_error_field_in_body(self):
        client = make_client(lambda request: httpx.Response(200, json={"error": "model not loaded"}))

        with pytest.raises(TransportError, match="model not loaded"):
            await client.chat([], "llama3")

    async def test_missing_message_gives_empty_content(self):
        client = make_client(lambda request: httpx.Response(200, json={"done": True}))

        reply = await client.chat([], "llama3")

        assert reply.content == ""


class TestStreamChat:
    """NDJSON streaming"""

    async def test_chunks_split_across_packets(self):
        pieces = [
            b'{"message":{"role":"assistant","content":"Hel',
            b'lo"},"done":false}\n{"message":{"role":"assistant","content":" world"},',
            b'"done":false}\n\n{"done":true}',
        ]

        def handler(request):
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(200, stream=ChunkedStream(pieces))

        chunks = await collect(make_client(handler))

        assert [c.get("message", {}).get("content") for c in chunks] == ["Hello", " world", None]
        assert chunks[-1]["done"] is True

    async def test_non_success_status(self):
        client = make_client(lambda request: httpx.Response(404, text="model 'x' not found"))

        with pytest.raises(TransportError, match="Ollama responded with 404: model 'x' not found"):
            await collect(client)

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(TransportError):
            await collect(make_client(handler))

    async def test_malformed_chunk(self):
        client = make_client(lambda request: httpx.Response(200, stream=ChunkedStream([b"oops\n"])))

        with pytest.raises(MalformedResponseError):
            await collect(client)


class TestServerHelpers:
    async def test_check_server(self):
        assert await make_client(lambda request: httpx.Response(200, json={"models": []})).check_server()
        assert not await make_client(lambda request: httpx.Response(500)).check_server()

    async def test_check_server_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        assert await make_client(handler).check_server() is False

    async def test_list_models(self):
        body = {"models": [{"name": "llama3:latest"}, {"name": "gemma3:270m"}, {"size": 1}]}
        client = make_client(lambda request: httpx.Response(200, json=body))

        assert await client.list_models() == ["llama3:latest", "gemma3:270m"]

    async def test_list_models_failure(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(TransportError, match=r"Failed to fetch models from Ollama \(500\): boom"):
            await client.list_models()

    @pytest.mark.parametrize("body", [["llama3:latest"], {"models": "llama3:latest"}, "ok"])
    async def test_list_models_unexpected_body(self, body):
        client = make_client(lambda request: httpx.Response(200, json=body))

        with pytest.raises(MalformedResponseError):
            await client.list_models()

    def test_base_url_trailing_slash_removed(self):
        assert OllamaClient(base_url="http://ollama.test/").base_url == "http://ollama.test"
