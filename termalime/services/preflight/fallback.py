"""
Free-text assessment fallback.

When neither the primary reply nor the repaired reply parses, the model is
asked for a three-line plain-text assessment:

    Summary: <what the command does>
    Likelihood of maliciousness: <0-100>%
    Rationale: <why>

This module cleans that text up and turns it into a PreflightReport.
"""

import re

from termalime.services.preflight.models import PreflightReport

# Likelihood (percent) at or above which the command is flagged risky
RISKY_LIKELIHOOD = 20

_FENCE_LINE = re.compile(r"^\s*```[\w-]*\s*$")
_LEADING_LABEL = re.compile(r"^\s*(?:assessment|answer|response|output)\s*:\s*$", re.IGNORECASE)
_ECHOED_CONTEXT = re.compile(r"^\s*(?:command|context)\s*:", re.IGNORECASE)
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
_TEMPLATE_LINE = re.compile(r"^\s*[\w ]+:\s*<[^<>]*>\s*%?\s*$")
_PERCENT = re.compile(r"(\d{1,3}(?:\.\d+)?)\s*%?")


def sanitize_assessment(text: str) -> str:
    """
    Strip code fences, bare leading labels and echoed prompt lines, including
    unfilled template lines such as ``Likelihood of maliciousness: <0-100>%``.

    Markdown emphasis and list markers are removed so that prefix matching
    sees ``summary:`` rather than ``**Summary:**`` or ``- Summary:``.
    """
    cleaned = []
    for line in text.replace("\r\n", "\n").split("\n"):
        if _FENCE_LINE.match(line) or _ECHOED_CONTEXT.match(line):
            continue
        line = _LIST_MARKER.sub("", line.replace("**", "").replace("__", "")).strip()
        if not line or _TEMPLATE_LINE.match(line):
            continue
        if not cleaned and _LEADING_LABEL.match(line):
            continue
        cleaned.append(line)
    return "\n".join(cleaned)


def risk_label(likelihood: int) -> str:
    if likelihood >= 70:
        return "high"
    if likelihood >= 40:
        return "medium"
    if likelihood >= 15:
        return "low"
    return "very low"


def _value_after_colon(line: str) -> str:
    _, _, value = line.partition(":")
    return value.strip()


def _parse_likelihood(line: str) -> int | None:
    value = _value_after_colon(line) or line
    match = _PERCENT.search(value)
    if not match:
        return None
    return max(0, min(100, round(float(match.group(1)))))


def assessment_text_to_report(text: str) -> PreflightReport | None:
    """
    Extract a report from a plain-text assessment by line prefix.

    ``is_risky`` is ``likelihood >= 20``. When no likelihood can be read the
    command is treated as risky.

    Returns:
        PreflightReport, or None if neither a summary, a rationale nor a
        likelihood could be found
    """
    summary = rationale = alternative = None
    likelihood = None

    for line in sanitize_assessment(text).split("\n"):
        lowered = line.lower()
        if lowered.startswith("summary:") and summary is None:
            summary = _value_after_colon(line)
        elif lowered.startswith("likelihood") and likelihood is None:
            likelihood = _parse_likelihood(line)
        elif lowered.startswith("rationale:") and rationale is None:
            rationale = _value_after_colon(line)
        elif lowered.startswith(("recommendation:", "mitigation:")) and alternative is None:
            alternative = _value_after_colon(line)

    if not summary and not rationale and likelihood is None:
        return None

    if likelihood is None:
        reason = rationale or "The model did not state how likely the command is to be malicious."
        is_risky = True
    else:
        label = f"{risk_label(likelihood)} risk, {likelihood}% likelihood of maliciousness"
        reason = f"{rationale} ({label})" if rationale else label
        is_risky = likelihood >= RISKY_LIKELIHOOD

    return PreflightReport(
        summary=summary or "No summary provided.",
        is_risky=is_risky,
        risk_reason=reason,
        safe_alternative=alternative,
    )
