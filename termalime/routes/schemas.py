"""
API Schemas

Request and response models for the terminal and assistant endpoints.
"""

from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

U16_MAX = 65535


class SuccessResponse(BaseModel, Generic[T]):
    """
    Standard success response wrapper.

    Response:
        ```json
        {
            "success": true,
            "data": { ... },
            "message": "Terminal session started",
            "timestamp": "2025-12-13T10:30:00.000Z"
        }
        ```
    """
    success: bool = Field(True, description="Always true for success responses")
    data: T = Field(..., description="Response payload")
    message: Optional[str] = Field(None, description="Optional success message")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Response timestamp (UTC)"
    )


# ===== Terminal =====

class SpawnTerminalRequest(BaseModel):
    """Request body for spawning a terminal"""
    shell: Optional[str] = None
    cols: int = Field(80, ge=0, le=U16_MAX)
    rows: int = Field(24, ge=0, le=U16_MAX)


class SpawnTerminalResponseData(BaseModel):
    """Response data for terminal spawn"""
    session_id: str
    websocket_url: str


class TerminalSessionInfo(BaseModel):
    """One live terminal session"""
    session_id: str
    shell: str
    pid: Optional[int] = None
    cols: int
    rows: int
    running: bool


class WriteTerminalRequest(BaseModel):
    """User input for a terminal"""
    data: str


class ResizeTerminalRequest(BaseModel):
    """New terminal window size"""
    cols: int = Field(..., ge=0, le=U16_MAX)
    rows: int = Field(..., ge=0, le=U16_MAX)
    pixel_width: Optional[int] = Field(None, ge=0, le=U16_MAX)
    pixel_height: Optional[int] = Field(None, ge=0, le=U16_MAX)


class TerminalContextResponse(BaseModel):
    """Recent output of a terminal for the assistant"""
    session_id: str
    last_lines: str


# ===== Assistant =====

class AskRequest(BaseModel):
    """Assistant chat request"""
    prompt: str = Field(..., min_length=1)
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    persona_prompt: Optional[str] = None
    session_id: Optional[str] = Field(
        None, description="Include recent output of this terminal as context"
    )
    terminal_context: Optional[str] = Field(
        None, description="Explicit terminal context (overrides session_id)"
    )
    context_lines: Optional[int] = Field(None, ge=1)


class ModelListResponse(BaseModel):
    """Locally available models"""
    models: List[str]


class HealthResponse(BaseModel):
    """Model server reachability"""
    ollama_available: bool
    base_url: str
