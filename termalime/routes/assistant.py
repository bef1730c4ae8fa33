"""
Assistant HTTP Routes

Command preflight analysis and streaming assistant chat.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from termalime.routes.schemas import AskRequest, HealthResponse, ModelListResponse, SuccessResponse
from termalime.services.chat import ChatChunk, ask_model
from termalime.services.ollama_client import OllamaClient
from termalime.services.preflight import AnalyzeCommandRequest, AnalyzeCommandResponse, CommandAnalyzer
from termalime.services.terminal import TerminalBridge

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/assistant", tags=["assistant"])


def get_ollama_client(request: Request) -> OllamaClient:
    return request.app.state.ollama_client


def get_command_analyzer(request: Request) -> CommandAnalyzer:
    return request.app.state.command_analyzer


def get_terminal_bridge(request: Request) -> TerminalBridge:
    return request.app.state.terminal_bridge


@router.post("/analyze", response_model=AnalyzeCommandResponse)
async def analyze_command(
    body: AnalyzeCommandRequest,
    analyzer: CommandAnalyzer = Depends(get_command_analyzer),
) -> AnalyzeCommandResponse:
    """
    Preflight check of a shell command

    Returns:
        action "run", "review" or "error" with the report and advisory message
    """
    return await analyzer.analyze_command(body.command, model=body.model)


async def _ndjson(chunks: AsyncIterator[ChatChunk]) -> AsyncIterator[str]:
    async for chunk in chunks:
        yield chunk.model_dump_json() + "\n"


@router.post("/ask")
async def ask(
    body: AskRequest,
    client: OllamaClient = Depends(get_ollama_client),
    bridge: TerminalBridge = Depends(get_terminal_bridge),
) -> StreamingResponse:
    """
    Stream an assistant reply as newline-delimited JSON ChatChunks

    Recent output of ``session_id`` is prefixed to the prompt unless an
    explicit ``terminal_context`` is given.
    """
    terminal_context = body.terminal_context
    if terminal_context is None and body.session_id:
        terminal_context = bridge.get_terminal_context(body.session_id, body.context_lines).last_lines

    chunks = ask_model(
        client,
        body.prompt,
        model=body.model,
        system_prompt=body.system_prompt,
        persona_prompt=body.persona_prompt,
        terminal_context=terminal_context,
    )
    return StreamingResponse(_ndjson(chunks), media_type="application/x-ndjson")


@router.get("/models", response_model=SuccessResponse[ModelListResponse])
async def list_models(client: OllamaClient = Depends(get_ollama_client)) -> Dict[str, Any]:
    """Models available on the local model server"""
    models = await client.list_models()
    return {"data": {"models": models}}


@router.get("/health", response_model=HealthResponse)
async def health(client: OllamaClient = Depends(get_ollama_client)) -> HealthResponse:
    """Whether the local model server answers"""
    available = await client.check_server()
    if not available:
        logger.warning(f"Ollama not reachable at {client.base_url}")
    return HealthResponse(ollama_available=available, base_url=client.base_url)
