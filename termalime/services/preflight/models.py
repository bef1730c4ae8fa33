"""
Preflight Models

Pydantic models for command risk reports and analysis decisions.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class AnalyzeAction(str, Enum):
    """What the terminal should do with the analyzed command"""

    RUN = "run"
    REVIEW = "review"
    ERROR = "error"


class PreflightReport(BaseModel):
    """Structured risk assessment of a not-yet-executed shell command"""

    summary: str
    is_risky: bool
    risk_reason: str
    safe_alternative: Optional[str] = None

    @field_validator("summary", "risk_reason", mode="before")
    @classmethod
    def coerce_text(cls, v):
        if v is None:
            raise ValueError("field is required")
        if isinstance(v, (list, tuple)):
            return " ".join(str(item) for item in v)
        return str(v).strip()

    @field_validator("safe_alternative", mode="before")
    @classmethod
    def blank_alternative_is_none(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        if not text or text.lower() in {"none", "null", "n/a"}:
            return None
        return text


class AnalyzeCommandResponse(BaseModel):
    """Final artifact of the analysis pipeline"""

    action: AnalyzeAction
    report: Optional[PreflightReport] = None
    message: Optional[str] = None
    score: int = Field(default=0, ge=0)


class AnalyzeCommandRequest(BaseModel):
    """Request body for command analysis"""

    command: str
    model: Optional[str] = None
