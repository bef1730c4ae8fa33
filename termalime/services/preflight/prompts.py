"""
Prompt templates for command risk analysis.
"""

PREFLIGHT_SYSTEM_PROMPT = (
    "You are a non-conversational shell command security analyzer. "
    "You never chat, greet, or explain outside the requested format. "
    "Respond with exactly one JSON object and nothing else: no prose, no markdown, no code fences. "
    'The object must have the keys "summary" (string), "is_risky" (boolean), '
    '"risk_reason" (string) and optionally "safe_alternative" (string). '
    "Use single quotes or backticks, never double quotes, when quoting shell snippets inside strings."
)

REPAIR_SYSTEM_PROMPT = (
    "You convert text into valid JSON. Output only the JSON object, with no commentary "
    "and no code fences."
)

FALLBACK_SYSTEM_PROMPT = (
    "You are a concise shell security reviewer. Answer in plain text using exactly the "
    "three requested lines and nothing else."
)


def build_preflight_prompt(command: str) -> str:
    return (
        "Assess the following shell command before it is executed.\n"
        "Return strict JSON of the form "
        '{"summary": "...", "is_risky": true|false, "risk_reason": "...", "safe_alternative": "..."}.\n\n'
        f"Command:\n{command}"
    )


def build_repair_prompt(raw_reply: str) -> str:
    return (
        "Convert this to valid JSON with the keys summary (string), is_risky (boolean), "
        "risk_reason (string) and optional safe_alternative (string). "
        "Keep the meaning unchanged.\n\n"
        f"{raw_reply}"
    )


def build_fallback_prompt(command: str) -> str:
    return (
        "Assess this shell command and reply with exactly three lines:\n"
        "Summary: <one sentence describing what the command does>\n"
        "Likelihood of maliciousness: <0-100>%\n"
        "Rationale: <one sentence explaining the likelihood>\n\n"
        f"Command: {command}"
    )


def preflight_messages(command: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": PREFLIGHT_SYSTEM_PROMPT},
        {"role": "user", "content": build_preflight_prompt(command)},
    ]


def repair_messages(raw_reply: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": REPAIR_SYSTEM_PROMPT},
        {"role": "user", "content": build_repair_prompt(raw_reply)},
    ]


def fallback_messages(command: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": FALLBACK_SYSTEM_PROMPT},
        {"role": "user", "content": build_fallback_prompt(command)},
    ]
