#!/usr/bin/env python3
"""
Ollama Client for the Termalime assistant

Thin httpx wrapper around the local model server:
- Non-streaming chat (risk analysis)
- Streaming chat as newline-delimited JSON chunks (assistant replies)
- Health check and model listing

No automatic retries: failures surface as TransportError.
"""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx

from termalime.config import TermalimeSettings, get_settings
from termalime.exceptions import MalformedResponseError, TransportError
from termalime.utils.structured_logging import get_logger

logger = get_logger(__name__)


@dataclass
class ChatReply:
    """Result of a non-streaming chat call"""

    content: str
    model: str
    raw: dict[str, Any] = field(default_factory=dict)


class NdjsonLineBuffer:
    """
    Reassembles newline-delimited JSON from arbitrary network chunks.

    Bytes are held until a newline arrives, so a JSON object split across
    packets is never parsed early. Blank lines are skipped.
    """

    def __init__(self):
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[dict[str, Any]]:
        self._buffer.extend(data)
        objects = []
        while True:
            position = self._buffer.find(b"\n")
            if position < 0:
                break
            line = bytes(self._buffer[:position])
            del self._buffer[: position + 1]
            parsed = self._parse_line(line)
            if parsed is not None:
                objects.append(parsed)
        return objects

    def flush(self) -> list[dict[str, Any]]:
        """Parse whatever is left once the stream ends without a final newline"""
        if not self._buffer:
            return []
        return self.feed(b"\n")

    @staticmethod
    def _parse_line(line: bytes) -> dict[str, Any] | None:
        text = line.decode("utf-8", errors="replace").strip()
        if not text:
            return None
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Malformed chunk from Ollama: {e}") from e
        if not isinstance(parsed, dict):
            raise MalformedResponseError("Malformed chunk from Ollama: expected a JSON object")
        return parsed


class OllamaClient:
    """Client for the Ollama HTTP API"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        settings: TermalimeSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = settings or get_settings()
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.timeout = httpx.Timeout(timeout if timeout is not None else settings.ollama_timeout)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def chat(self, messages: list[dict[str, str]], model: str) -> ChatReply:
        """
        Send a non-streaming chat request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model name

        Returns:
            ChatReply with the assistant message content

        Raises:
            TransportError: Connection failure, timeout or non-success status
            MalformedResponseError: Body is not a JSON object
        """
        payload = {"model": model, "messages": messages, "stream": False}

        try:
            async with self._client() as client:
                response = await client.post("/api/chat", json=payload)
        except httpx.TimeoutException as e:
            logger.error("Request to Ollama timed out", model=model)
            raise TransportError(f"Request to Ollama timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Cannot reach Ollama", base_url=self.base_url, error_message=str(e))
            raise TransportError(f"Cannot connect to Ollama at {self.base_url}: {e}") from e

        if not response.is_success:
            raise TransportError.from_status(response.status_code, response.text.strip())

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Ollama returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError("Ollama returned a non-object JSON body")

        if data.get("error"):
            raise TransportError(f"Ollama error: {data['error']}", detail=str(data["error"]))

        message = data.get("message") or {}
        content = message.get("content", "") if isinstance(message, dict) else ""
        return ChatReply(content=content or "", model=model, raw=data)

    async def stream_chat(
        self, messages: list[dict[str, str]], model: str
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Send a streaming chat request and yield each NDJSON chunk in order.

        Raises:
            TransportError: Connection failure or non-success status
            MalformedResponseError: A line is not a JSON object
        """
        payload = {"model": model, "messages": messages, "stream": True}
        buffer = NdjsonLineBuffer()

        try:
            async with self._client() as client:
                async with client.stream("POST", "/api/chat", json=payload) as response:
                    if not response.is_success:
                        detail = (await response.aread()).decode("utf-8", errors="replace").strip()
                        raise TransportError.from_status(response.status_code, detail)

                    async for data in response.aiter_bytes():
                        for chunk in buffer.feed(data):
                            yield chunk

            for chunk in buffer.flush():
                yield chunk

        except httpx.HTTPError as e:
            logger.error("Ollama stream failed", model=model, error_message=str(e))
            raise TransportError(f"Ollama stream failed: {e}") from e

    async def check_server(self) -> bool:
        """Check whether the model server answers"""
        try:
            async with self._client() as client:
                response = await client.get("/api/tags")
            return response.is_success
        except httpx.HTTPError as e:
            logger.debug("Ollama server not responding", error_message=str(e))
            return False

    async def list_models(self) -> list[str]:
        """
        Names of locally available models.

        Raises:
            TransportError: Server unreachable or non-success status
        """
        try:
            async with self._client() as client:
                response = await client.get("/api/tags")
        except httpx.HTTPError as e:
            raise TransportError(f"Cannot connect to Ollama at {self.base_url}: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Failed to fetch models from Ollama ({response.status_code}): {response.text.strip()}",
                status_code=response.status_code,
                detail=response.text.strip(),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Ollama returned invalid JSON: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("models", []), list):
            raise MalformedResponseError("Ollama returned an unexpected model list")
        return [
            model["name"] for model in data.get("models", []) if isinstance(model, dict) and "name" in model
        ]
