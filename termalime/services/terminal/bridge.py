"""
Terminal Bridge Service - PTY management for the embedded terminal

Async facade used by the HTTP/WebSocket layer:
- Spawning sessions and starting their reader threads
- Writing user input and resizing
- Recent-output context for the assistant
- Teardown

Blocking PTY calls run on worker threads (asyncio.to_thread); the event
loop never performs terminal I/O itself.
"""

import asyncio
from dataclasses import dataclass

from termalime.config import TermalimeSettings, get_settings
from termalime.exceptions import SessionNotFoundError
from termalime.services.terminal.events import TerminalEventChannel
from termalime.services.terminal.pty_session import PtyReader, PtySize
from termalime.services.terminal.reader import ReaderTask
from termalime.services.terminal.registry import SessionRegistry
from termalime.services.terminal.snapshot import SnapshotStore
from termalime.utils.structured_logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TerminalContext:
    """Recent output of one session"""

    session_id: str
    last_lines: str


class TerminalBridge:
    """Main Terminal Bridge service for PTY management"""

    def __init__(
        self,
        registry: SessionRegistry | None = None,
        settings: TermalimeSettings | None = None,
        channel: TerminalEventChannel | None = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or SessionRegistry(
            lock_timeout=self.settings.registry_lock_timeout,
            close_timeout=self.settings.session_close_timeout,
        )
        self.channel = channel or TerminalEventChannel()
        self.snapshots = SnapshotStore(
            max_bytes=self.settings.snapshot_max_bytes,
            max_lines=self.settings.context_max_lines,
        )
        self.readers: dict[str, ReaderTask] = {}

    def _spawn_blocking(self, size: PtySize, shell: str | None) -> tuple[str, PtyReader]:
        session_id = self.registry.create_session(size, shell)
        try:
            reader = self.registry.take_reader(session_id)
        except Exception:
            self.registry.remove_session(session_id)
            raise
        return session_id, reader

    async def spawn_session(self, size: PtySize | None = None, shell: str | None = None) -> str:
        """
        Spawn a new terminal session and start streaming its output.

        Args:
            size: Initial window size (default 80x24)
            shell: Shell override (defaults to settings, then $SHELL, then /bin/bash)

        Returns:
            Session id
        """
        size = size or PtySize()
        session_id, reader = await asyncio.to_thread(
            self._spawn_blocking, size, shell or self.settings.default_shell
        )

        snapshot = self.snapshots.create(session_id)
        task = ReaderTask(
            session_id,
            reader,
            snapshot,
            self.channel.publish,
            chunk_size=self.settings.reader_chunk_size,
        )
        self.readers[session_id] = task.start()

        logger.info("Terminal session started", session_id=session_id, cols=size.cols, rows=size.rows)
        return session_id

    async def write_session(self, session_id: str, data: str | bytes) -> None:
        """
        Write user input (keystrokes, pasted text) to a session.

        Raises:
            SessionNotFoundError: Unknown session id
            PtyIOError: Write failed
            ValueError: Input is neither text nor bytes
        """
        if isinstance(data, str):
            payload = data.encode("utf-8")
        elif isinstance(data, (bytes, bytearray)):
            payload = bytes(data)
        else:
            raise ValueError(f"Terminal input must be text, got {type(data).__name__}")
        await asyncio.to_thread(
            self.registry.with_session, session_id, lambda session: session.write(payload)
        )

    async def resize_session(
        self,
        session_id: str,
        cols: int,
        rows: int,
        pixel_width: int | None = None,
        pixel_height: int | None = None,
    ) -> None:
        """
        Resize a session's terminal window.

        Raises:
            SessionNotFoundError: Unknown session id
            PtyIOError: ioctl failed
            ValueError: Dimensions outside the unsigned 16-bit range
        """
        size = PtySize(
            cols=cols,
            rows=rows,
            pixel_width=pixel_width or 0,
            pixel_height=pixel_height or 0,
        )
        await asyncio.to_thread(
            self.registry.with_session, session_id, lambda session: session.resize(size)
        )

    def get_terminal_context(self, session_id: str, max_lines: int | None = None) -> TerminalContext:
        """
        Recent output of a session for assistant context.

        Args:
            session_id: Session id
            max_lines: Lines wanted (default from settings, clamped to [1, context_max_lines])

        Raises:
            SessionNotFoundError: Unknown session id
        """
        snapshot = self.snapshots.get(session_id)
        if snapshot is None:
            raise SessionNotFoundError(session_id)

        if max_lines is None:
            max_lines = self.settings.context_default_lines
        return TerminalContext(session_id=session_id, last_lines=snapshot.last_lines(max_lines))

    async def close_session(self, session_id: str) -> None:
        """
        Tear down a session: close the PTY, stop the shell, drop its snapshot.

        Raises:
            SessionNotFoundError: Unknown session id
        """
        removed = await asyncio.to_thread(self.registry.remove_session, session_id)
        self.snapshots.discard(session_id)
        task = self.readers.pop(session_id, None)
        if not removed:
            raise SessionNotFoundError(session_id)

        if task is not None:
            # Reader exits once the shell is gone and the slave side closes
            await asyncio.to_thread(task.join, self.settings.session_close_timeout)

        logger.info("Terminal session closed", session_id=session_id)

    def list_sessions(self) -> list[dict]:
        return self.registry.describe()

    def has_session(self, session_id: str) -> bool:
        return session_id in self.registry

    async def shutdown(self) -> None:
        """Close every session (application shutdown)"""
        await asyncio.to_thread(self.registry.shutdown)
        for session_id in list(self.readers):
            self.snapshots.discard(session_id)
        self.readers.clear()

    # ===== Event subscription =====

    def subscribe(self, session_id: str | None = None) -> asyncio.Queue:
        return self.channel.subscribe(session_id)

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self.channel.unsubscribe(queue)
