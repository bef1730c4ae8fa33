"""
Termalime error taxonomy.

Service-layer exceptions. They carry human-readable messages and are turned
into HTTP errors at the route boundary (see termalime.utils.errors).
"""


class TermalimeError(Exception):
    """Base class for all Termalime errors."""


class SessionNotFoundError(TermalimeError):
    """Unknown terminal session id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"PTY session {session_id} not found")


class SpawnError(TermalimeError):
    """The OS could not allocate a pseudo-terminal or start the shell."""


class PtyIOError(TermalimeError):
    """Write, resize or read failed on a live session."""


class ReaderAlreadyTakenError(TermalimeError):
    """The read half of a session has already been detached."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"PTY reader for session {session_id} already taken")


class RegistryUnavailableError(TermalimeError):
    """The session registry lock could not be acquired or the registry is shut down."""


class TransportError(TermalimeError):
    """Network failure or non-success status from the model server."""

    def __init__(self, message: str, status_code: int | None = None, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    @classmethod
    def from_status(cls, status_code: int, detail: str) -> "TransportError":
        message = f"Ollama responded with {status_code}"
        if detail:
            message = f"{message}: {detail}"
        return cls(message, status_code=status_code, detail=detail)


class MalformedResponseError(TermalimeError):
    """The model server answered with a body that is not the expected JSON."""


class ReportParseError(TermalimeError):
    """A candidate string could not be turned into a preflight report."""
