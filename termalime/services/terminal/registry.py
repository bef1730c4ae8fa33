"""
Terminal Session Registry

Maps session ids to live PtySession objects. Every lookup and mutation goes
through one lock; slow work (spawning the shell, closing the PTY) happens
outside it so one session never stalls the others.

The registry is an explicit object owned by the application (see
TerminalBridge); tests create isolated registries freely.
"""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from termalime.exceptions import RegistryUnavailableError, SessionNotFoundError
from termalime.services.terminal.pty_session import PtyReader, PtySession, PtySize
from termalime.utils.structured_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SessionRegistry:
    """
    Thread-safe map of session id -> PtySession.

    Invariants:
    - At most one entry per id
    - Sessions are only reachable through with_session()
    - After shutdown() every operation raises RegistryUnavailableError
    """

    def __init__(self, lock_timeout: float = 5.0, close_timeout: float = 2.0):
        self._sessions: dict[str, PtySession] = {}
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout
        self._close_timeout = close_timeout
        self._closed = False

    @contextmanager
    def _locked(self) -> Iterator[dict[str, PtySession]]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise RegistryUnavailableError(
                f"session registry lock not acquired within {self._lock_timeout}s"
            )
        try:
            if self._closed:
                raise RegistryUnavailableError("session registry is shut down")
            yield self._sessions
        finally:
            self._lock.release()

    def create_session(self, size: PtySize | None = None, shell: str | None = None) -> str:
        """
        Spawn a new PTY session and store it.

        Returns:
            The new session id

        Raises:
            SpawnError: PTY allocation or shell start failed
            RegistryUnavailableError: Registry shut down while spawning
        """
        session = PtySession.spawn(size or PtySize(), shell)
        try:
            with self._locked() as sessions:
                sessions[session.id] = session
        except RegistryUnavailableError:
            session.close(self._close_timeout)
            raise
        return session.id

    def with_session(self, session_id: str, operation: Callable[[PtySession], T]) -> T:
        """
        Run ``operation`` with exclusive access to one session.

        Raises:
            SessionNotFoundError: Unknown session id
        """
        with self._locked() as sessions:
            session = sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            return operation(session)

    def take_reader(self, session_id: str) -> PtyReader:
        """
        Detach the read half of a session (only once per session).

        Raises:
            SessionNotFoundError: Unknown session id
            ReaderAlreadyTakenError: Reader was already taken
        """
        return self.with_session(session_id, lambda session: session.take_reader())

    def remove_session(self, session_id: str) -> bool:
        """
        Drop a session, release its PTY and terminate its shell.

        Returns:
            True if a session was removed
        """
        with self._locked() as sessions:
            session = sessions.pop(session_id, None)

        if session is None:
            return False

        session.close(self._close_timeout)
        return True

    def session_ids(self) -> list[str]:
        with self._locked() as sessions:
            return list(sessions)

    def describe(self) -> list[dict]:
        """Summaries of all live sessions"""
        with self._locked() as sessions:
            return [
                {
                    "session_id": session.id,
                    "shell": session.shell,
                    "pid": session.pid,
                    "cols": session.size.cols,
                    "rows": session.size.rows,
                    "running": session.process.poll() is None,
                }
                for session in sessions.values()
            ]

    def __contains__(self, session_id: object) -> bool:
        with self._locked() as sessions:
            return session_id in sessions

    def __len__(self) -> int:
        with self._locked() as sessions:
            return len(sessions)

    def shutdown(self) -> None:
        """Close every session and refuse further use. Repeated calls are no-ops."""
        if self._closed:
            return
        with self._locked() as sessions:
            self._closed = True
            remaining = list(sessions.values())
            sessions.clear()

        for session in remaining:
            try:
                session.close(self._close_timeout)
            except Exception as e:
                logger.error("Failed to close session during shutdown", error=e, session_id=session.id)

        logger.info("Session registry shut down", closed_sessions=len(remaining))
