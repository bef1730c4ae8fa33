"""
Terminal HTTP Routes

HTTP endpoints for terminal session management plus the WebSocket used for
real-time terminal I/O.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, WebSocket, WebSocketDisconnect

from termalime.exceptions import TermalimeError
from termalime.routes.schemas import (
    ResizeTerminalRequest,
    SpawnTerminalRequest,
    SpawnTerminalResponseData,
    SuccessResponse,
    TerminalContextResponse,
    TerminalSessionInfo,
    WriteTerminalRequest,
)
from termalime.services.terminal import PtySize, TerminalBridge, TerminalEventKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/terminal", tags=["terminal"])


def get_terminal_bridge(request: Request) -> TerminalBridge:
    return request.app.state.terminal_bridge


# ===== HTTP Routes =====

@router.post("/spawn", response_model=SuccessResponse[SpawnTerminalResponseData])
async def spawn_terminal(
    body: Optional[SpawnTerminalRequest] = None,
    bridge: TerminalBridge = Depends(get_terminal_bridge),
) -> Dict[str, Any]:
    """
    Spawn a new terminal session

    Returns:
        Session id and the WebSocket URL streaming its output
    """
    body = body or SpawnTerminalRequest()
    session_id = await bridge.spawn_session(
        size=PtySize(cols=body.cols, rows=body.rows),
        shell=body.shell,
    )
    return {
        "data": {
            "session_id": session_id,
            "websocket_url": f"/api/v1/terminal/ws/{session_id}",
        },
        "message": "Terminal session started",
    }


@router.get("/sessions", response_model=SuccessResponse[List[TerminalSessionInfo]])
async def list_terminals(bridge: TerminalBridge = Depends(get_terminal_bridge)) -> Dict[str, Any]:
    """List live terminal sessions"""
    return {"data": bridge.list_sessions()}


@router.post("/{session_id}/write", response_model=SuccessResponse[dict])
async def write_terminal(
    session_id: str,
    body: WriteTerminalRequest,
    bridge: TerminalBridge = Depends(get_terminal_bridge),
) -> Dict[str, Any]:
    """Send input to a terminal"""
    await bridge.write_session(session_id, body.data)
    return {"data": {"session_id": session_id, "bytes": len(body.data.encode("utf-8"))}}


@router.post("/{session_id}/resize", response_model=SuccessResponse[dict])
async def resize_terminal(
    session_id: str,
    body: ResizeTerminalRequest,
    bridge: TerminalBridge = Depends(get_terminal_bridge),
) -> Dict[str, Any]:
    """Resize a terminal window"""
    await bridge.resize_session(
        session_id,
        cols=body.cols,
        rows=body.rows,
        pixel_width=body.pixel_width,
        pixel_height=body.pixel_height,
    )
    return {"data": {"session_id": session_id, "cols": body.cols, "rows": body.rows}}


@router.get("/{session_id}/context", response_model=TerminalContextResponse)
async def get_terminal_context(
    session_id: str,
    max_lines: Optional[int] = Query(None, description="Lines wanted, clamped to [1, 400]"),
    bridge: TerminalBridge = Depends(get_terminal_bridge),
) -> TerminalContextResponse:
    """Recent terminal output for assistant context"""
    context = bridge.get_terminal_context(session_id, max_lines)
    return TerminalContextResponse(session_id=context.session_id, last_lines=context.last_lines)


@router.delete("/{session_id}", response_model=SuccessResponse[dict])
async def close_terminal(
    session_id: str,
    bridge: TerminalBridge = Depends(get_terminal_bridge),
) -> Dict[str, Any]:
    """Close a terminal session"""
    await bridge.close_session(session_id)
    return {"data": {"session_id": session_id}, "message": "Terminal session closed"}


# ===== WebSocket =====

async def _pump_output(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Forward reader events to the client until the stream ends"""
    while True:
        event = await queue.get()
        await websocket.send_json(event.to_dict())
        if event.kind in (TerminalEventKind.EOF, TerminalEventKind.ERROR):
            return


async def _handle_client_message(bridge: TerminalBridge, session_id: str, message: str) -> None:
    try:
        data = json.loads(message)
    except json.JSONDecodeError:
        # Treat as raw input if not valid JSON
        await bridge.write_session(session_id, message)
        return

    if not isinstance(data, dict):
        await bridge.write_session(session_id, message)
        return

    msg_type = data.get("type")
    if msg_type == "input":
        await bridge.write_session(session_id, data.get("data", ""))
    elif msg_type == "resize":
        await bridge.resize_session(
            session_id,
            cols=data.get("cols", 80),
            rows=data.get("rows", 24),
            pixel_width=data.get("pixel_width"),
            pixel_height=data.get("pixel_height"),
        )
    else:
        raise ValueError(f"Unknown message type: {msg_type}")


async def _receive_input(websocket: WebSocket, bridge: TerminalBridge, session_id: str) -> None:
    while True:
        message = await websocket.receive_text()
        try:
            await _handle_client_message(bridge, session_id, message)
        except (TermalimeError, ValueError) as e:
            await websocket.send_json({"type": "error", "session_id": session_id, "data": str(e)})


@router.websocket("/ws/{session_id}")
async def terminal_websocket(websocket: WebSocket, session_id: str) -> None:
    """
    WebSocket endpoint for real-time terminal I/O

    Protocol:
        Client -> Server: {"type": "input", "data": "ls\n"}
        Client -> Server: {"type": "resize", "rows": 24, "cols": 80}
        Client -> Server: any non-JSON text is written as raw input
        Server -> Client: {"type": "output" | "error" | "eof", "session_id": ..., "data": ...}
    """
    bridge: TerminalBridge = websocket.app.state.terminal_bridge
    await websocket.accept()

    if not bridge.has_session(session_id):
        await websocket.send_json({"type": "error", "session_id": session_id, "data": "Terminal not found"})
        await websocket.close(code=1008)
        return

    queue = bridge.subscribe(session_id)
    tasks = [
        asyncio.create_task(_pump_output(websocket, queue)),
        asyncio.create_task(_receive_input(websocket, bridge, session_id)),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            task.result()
        await websocket.close()
    except WebSocketDisconnect:
        logger.debug(f"WebSocket disconnected for terminal {session_id}")
    except Exception as e:
        logger.error(f"WebSocket error for terminal {session_id}: {e}")
    finally:
        for task in tasks:
            task.cancel()
        bridge.unsubscribe(queue)
