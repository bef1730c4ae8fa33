"""
Preflight Report Parser

Turns a language model's reply into a PreflightReport. Small local models
usually produce almost-valid JSON, so parsing is an ordered cascade of
pure functions:

    candidates:  trimmed text -> code fence stripped -> first balanced {...}
    repairs:     as-is -> missing commas inserted -> quotes inside backticks normalized
    parsers:     strict json -> lenient json5

Every (candidate, repair, parser) combination is tried in that order and the
first one that yields a valid report wins.
"""

import json
import re
from collections.abc import Callable

import json5
from pydantic import ValidationError

from termalime.exceptions import ReportParseError
from termalime.services.preflight.models import PreflightReport

CandidateExtractor = Callable[[str], str | None]
Repair = Callable[[str], str]
Parser = Callable[[str], PreflightReport]


# ===== Candidate extraction =====


def trimmed(text: str) -> str | None:
    return text.strip() or None


def strip_code_fence(text: str) -> str | None:
    """Remove a leading ```json / ``` fence and a trailing ``` fence"""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped[3:]
        if stripped[:4].lower() == "json":
            stripped = stripped[4:]
    if stripped.endswith("```"):
        stripped = stripped[:-3]
    return stripped.strip() or None


def extract_balanced_object(text: str) -> str | None:
    """First balanced {...} substring, depth tracked over the whole text"""
    start = None
    depth = 0
    for index, char in enumerate(text):
        if char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


# ===== Repairs =====

_KEY_VALUE_LINE = re.compile(r'^\s*(?:"[^"]+"|[A-Za-z_][\w-]*)\s*:\s*\S')
_BACKTICK_SPAN = re.compile(r"`[^`]*`")


def unchanged(text: str) -> str:
    return text


def insert_missing_commas(text: str) -> str:
    """
    Add a trailing comma to ``key: value`` lines that lack one when the next
    non-blank line does not close an object or array.
    """
    lines = text.split("\n")
    repaired = []
    for index, line in enumerate(lines):
        stripped = line.rstrip()
        if _KEY_VALUE_LINE.match(stripped) and not stripped.endswith((",", "{", "[")):
            following = next((candidate for candidate in lines[index + 1:] if candidate.strip()), None)
            if following is not None and not following.lstrip().startswith(("}", "]")):
                line = stripped + ","
        repaired.append(line)
    return "\n".join(repaired)


def normalize_backtick_quotes(text: str) -> str:
    """Swap double quotes inside `backtick` spans for single quotes"""
    return _BACKTICK_SPAN.sub(lambda match: match.group(0).replace('"', "'"), text)


def commas_and_backticks(text: str) -> str:
    return normalize_backtick_quotes(insert_missing_commas(text))


# ===== Parsers =====


def _to_report(value: object) -> PreflightReport:
    if not isinstance(value, dict):
        raise ReportParseError(f"expected a JSON object, got {type(value).__name__}")
    try:
        return PreflightReport.model_validate(value)
    except ValidationError as e:
        raise ReportParseError(f"object is not a preflight report: {e.error_count()} error(s)") from e


def parse_strict(text: str) -> PreflightReport:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ReportParseError(f"strict JSON parse failed: {e}") from e
    return _to_report(value)


def parse_lenient(text: str) -> PreflightReport:
    """JSON5: trailing commas, unquoted keys, single-quoted strings, comments"""
    try:
        value = json5.loads(text)
    except ValueError as e:
        raise ReportParseError(f"lenient JSON parse failed: {e}") from e
    return _to_report(value)


CANDIDATE_EXTRACTORS: tuple[CandidateExtractor, ...] = (
    trimmed,
    strip_code_fence,
    extract_balanced_object,
)
REPAIRS: tuple[Repair, ...] = (
    unchanged,
    insert_missing_commas,
    normalize_backtick_quotes,
    commas_and_backticks,
)
PARSERS: tuple[Parser, ...] = (parse_strict, parse_lenient)


def parse_preflight_report(
    text: str,
    extractors: tuple[CandidateExtractor, ...] = CANDIDATE_EXTRACTORS,
    repairs: tuple[Repair, ...] = REPAIRS,
    parsers: tuple[Parser, ...] = PARSERS,
) -> PreflightReport | None:
    """
    Run the parsing cascade.

    Returns:
        The first report any strategy produces, or None if all fail
    """
    if not text or not text.strip():
        return None

    tried: set[str] = set()
    for extract in extractors:
        candidate = extract(text)
        if candidate is None:
            continue
        for repair in repairs:
            repaired = repair(candidate)
            if repaired in tried:
                continue
            tried.add(repaired)
            for parse in parsers:
                try:
                    return parse(repaired)
                except ReportParseError:
                    continue
    return None
