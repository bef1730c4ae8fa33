"""
Assistant chat - streaming replies with optional terminal context.

Builds the message list (system prompt, persona directive, user prompt with
recent terminal output prefixed) and turns the model server's NDJSON stream
into ChatChunk events.
"""

from collections.abc import AsyncIterator
from contextlib import aclosing

from pydantic import BaseModel

from termalime.config import get_settings
from termalime.exceptions import MalformedResponseError, TransportError
from termalime.services.ollama_client import OllamaClient
from termalime.utils.structured_logging import get_logger

logger = get_logger(__name__)


class ChatChunk(BaseModel):
    """Incremental assistant output"""

    content: str | None = None
    done: bool = False
    error: str | None = None


def build_user_content(prompt: str, terminal_context: str | None = None) -> str:
    """Prefix the prompt with recent terminal output when there is any"""
    context = (terminal_context or "").strip()
    if not context:
        return prompt
    return f"Recent terminal output:\n{context}\n\nUser request:\n{prompt}"


def build_chat_messages(
    prompt: str,
    system_prompt: str | None = None,
    persona_prompt: str | None = None,
    terminal_context: str | None = None,
) -> list[dict[str, str]]:
    messages = []
    for instruction in (system_prompt, persona_prompt):
        if instruction and instruction.strip():
            messages.append({"role": "system", "content": instruction.strip()})
    messages.append({"role": "user", "content": build_user_content(prompt, terminal_context)})
    return messages


def chunk_from_response(chunk: dict) -> ChatChunk | None:
    """
    Map one server chunk to a ChatChunk.

    An error ends the stream; message content is forwarded with its done
    flag; a bare done marker ends the stream. Anything else is ignored.
    """
    if chunk.get("error"):
        return ChatChunk(done=True, error=str(chunk["error"]))

    done = bool(chunk.get("done", False))
    message = chunk.get("message")
    if isinstance(message, dict):
        return ChatChunk(content=message.get("content", ""), done=done)

    if done:
        return ChatChunk(done=True)
    return None


async def ask_model(
    client: OllamaClient,
    prompt: str,
    model: str | None = None,
    system_prompt: str | None = None,
    persona_prompt: str | None = None,
    terminal_context: str | None = None,
) -> AsyncIterator[ChatChunk]:
    """
    Stream an assistant reply.

    Transport and protocol failures are reported as a final chunk with
    ``done=True`` and ``error`` set, never raised mid-stream.
    """
    model = model or get_settings().chat_model
    messages = build_chat_messages(prompt, system_prompt, persona_prompt, terminal_context)
    logger.debug("Asking model", model=model, messages=len(messages), has_context=bool(terminal_context))

    try:
        async with aclosing(client.stream_chat(messages, model)) as stream:
            async for raw_chunk in stream:
                chunk = chunk_from_response(raw_chunk)
                if chunk is None:
                    continue
                yield chunk
                if chunk.error:
                    return
    except (TransportError, MalformedResponseError) as e:
        logger.warning("Assistant stream failed", model=model, error_message=str(e))
        yield ChatChunk(done=True, error=str(e))
