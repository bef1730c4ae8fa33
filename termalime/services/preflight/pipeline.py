"""
Command Risk Analysis Pipeline

Orchestrates the preflight check of a shell command:

1. Heuristic scoring. Low scores run without a model call.
2. Primary model call asking for a JSON report.
3. Parsing cascade on the reply.
4. Repair round-trip (model asked to convert its reply into valid JSON).
5. Fallback round-trip (three-line plain-text assessment).
6. Decision composition. Heuristic reasons are attached to every
   decision that involved the model.
"""

from termalime.config import get_settings
from termalime.exceptions import MalformedResponseError, TransportError
from termalime.services.ollama_client import OllamaClient
from termalime.services.preflight.fallback import assessment_text_to_report
from termalime.services.preflight.heuristics import (
    format_heuristic_note,
    heuristic_reasons,
    suspicion_score,
)
from termalime.services.preflight.models import (
    AnalyzeAction,
    AnalyzeCommandResponse,
    PreflightReport,
)
from termalime.services.preflight.parser import parse_preflight_report
from termalime.services.preflight.prompts import (
    fallback_messages,
    preflight_messages,
    repair_messages,
)
from termalime.utils.structured_logging import get_logger, log_execution

logger = get_logger(__name__)

RAW_REPLY_EXCERPT_CHARS = 400


def compose_decision(
    report: PreflightReport | None,
    reasons: list[str],
    score: int,
    raw_reply: str = "",
) -> AnalyzeCommandResponse:
    """
    Turn the pipeline's findings into a final decision.

    A report flagged risky, or any heuristic reason, means review. A report
    with no concerns means run. No report at all means review with whatever
    text the model produced, never run.
    """
    note = format_heuristic_note(reasons)

    if report is not None:
        if report.is_risky or reasons:
            return AnalyzeCommandResponse(
                action=AnalyzeAction.REVIEW, report=report, message=note, score=score
            )
        return AnalyzeCommandResponse(action=AnalyzeAction.RUN, report=report, score=score)

    parts = ["The model's assessment could not be parsed; review the command manually."]
    excerpt = raw_reply.strip()[:RAW_REPLY_EXCERPT_CHARS]
    if excerpt:
        parts.append(f"Model reply: {excerpt}")
    if note:
        parts.append(note)
    return AnalyzeCommandResponse(action=AnalyzeAction.REVIEW, message="\n\n".join(parts), score=score)


class CommandAnalyzer:
    """Preflight risk analysis for shell commands"""

    def __init__(
        self,
        client: OllamaClient,
        default_model: str | None = None,
        threshold: int | None = None,
    ):
        settings = get_settings()
        self.client = client
        self.default_model = default_model or settings.preflight_model
        self.threshold = threshold if threshold is not None else settings.suspicion_threshold

    @log_execution("preflight.analyze_command")
    async def analyze_command(self, command: str, model: str | None = None) -> AnalyzeCommandResponse:
        """
        Analyze a command before it runs.

        Raises:
            MalformedResponseError: The primary reply body is not JSON
        """
        command = command.strip()
        if not command:
            return AnalyzeCommandResponse(action=AnalyzeAction.RUN, score=0)

        score = suspicion_score(command)
        if score < self.threshold:
            logger.debug("Command below suspicion threshold", score=score)
            return AnalyzeCommandResponse(action=AnalyzeAction.RUN, score=score)

        reasons = heuristic_reasons(command)
        model = model or self.default_model
        logger.info("Running model preflight check", score=score, model=model, reasons=len(reasons))

        try:
            reply = await self.client.chat(preflight_messages(command), model)
        except TransportError as e:
            logger.warning("Preflight model call failed", score=score, error_message=str(e))
            return AnalyzeCommandResponse(action=AnalyzeAction.ERROR, message=str(e), score=score)

        report = parse_preflight_report(reply.content)
        if report is None:
            report = await self._repair(reply.content, model)
        if report is None:
            report = await self._fallback(command, model)

        decision = compose_decision(report, reasons, score, raw_reply=reply.content)
        logger.info("Preflight decision", action=decision.action.value, score=score)
        return decision

    async def _repair(self, raw_reply: str, model: str) -> PreflightReport | None:
        if not raw_reply.strip():
            return None
        try:
            repaired = await self.client.chat(repair_messages(raw_reply), model)
        except (TransportError, MalformedResponseError) as e:
            logger.warning("Repair round-trip failed", stage="repair", error_message=str(e))
            return None
        if not repaired.content.strip():
            return None
        return parse_preflight_report(repaired.content)

    async def _fallback(self, command: str, model: str) -> PreflightReport | None:
        try:
            reply = await self.client.chat(fallback_messages(command), model)
        except (TransportError, MalformedResponseError) as e:
            logger.warning("Fallback round-trip failed", stage="fallback", error_message=str(e))
            return None
        return assessment_text_to_report(reply.content)
