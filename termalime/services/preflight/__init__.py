"""
Preflight Services Package

Risk analysis for shell commands before they are executed:
- Heuristic suspicion scoring
- Model report parsing cascade
- Free-text fallback and decision pipeline
"""

from .fallback import assessment_text_to_report, risk_label, sanitize_assessment
from .heuristics import format_heuristic_note, heuristic_reasons, suspicion_score
from .models import AnalyzeAction, AnalyzeCommandRequest, AnalyzeCommandResponse, PreflightReport
from .parser import parse_preflight_report
from .pipeline import CommandAnalyzer, compose_decision

__all__ = [
    "AnalyzeAction",
    "AnalyzeCommandRequest",
    "AnalyzeCommandResponse",
    "CommandAnalyzer",
    "PreflightReport",
    "assessment_text_to_report",
    "compose_decision",
    "format_heuristic_note",
    "heuristic_reasons",
    "parse_preflight_report",
    "risk_label",
    "sanitize_assessment",
    "suspicion_score",
]
