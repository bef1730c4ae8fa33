"""
PTY Reader Task

One background thread per session that drains PTY output, appends it to the
session snapshot and publishes it as TerminalEvents. Ends on end of stream
or read error; it never removes the session itself.
"""

import threading
from collections.abc import Callable
from typing import Protocol

from termalime.config import READER_CHUNK_SIZE
from termalime.services.terminal.events import TerminalEvent, TerminalEventKind
from termalime.services.terminal.snapshot import TerminalSnapshot
from termalime.utils.structured_logging import get_logger

logger = get_logger(__name__)


class ReadHalf(Protocol):
    def read(self, size: int) -> bytes: ...

    def close(self) -> None: ...


class ReaderTask:
    """Background thread draining one session's PTY output"""

    def __init__(
        self,
        session_id: str,
        reader: ReadHalf,
        snapshot: TerminalSnapshot,
        emit: Callable[[TerminalEvent], None],
        chunk_size: int = READER_CHUNK_SIZE,
    ):
        self.session_id = session_id
        self._reader = reader
        self._snapshot = snapshot
        self._emit = emit
        self._chunk_size = chunk_size
        self._thread = threading.Thread(
            target=self.run, name=f"pty-reader-{session_id[:8]}", daemon=True
        )
        self.chunks_read = 0

    def start(self) -> "ReaderTask":
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def run(self) -> None:
        """Read loop; runs on the reader thread"""
        try:
            while True:
                try:
                    chunk = self._reader.read(self._chunk_size)
                except OSError as e:
                    logger.warning("PTY read failed", session_id=self.session_id, error_message=str(e))
                    self._emit(
                        TerminalEvent(self.session_id, TerminalEventKind.ERROR, f"[PTY ERROR] {e}")
                    )
                    return

                if not chunk:
                    logger.debug("PTY stream ended", session_id=self.session_id, chunks=self.chunks_read)
                    self._emit(TerminalEvent(self.session_id, TerminalEventKind.EOF))
                    return

                text = chunk.decode("utf-8", errors="replace")
                self.chunks_read += 1
                self._snapshot.append(text)
                self._emit(TerminalEvent(self.session_id, TerminalEventKind.OUTPUT, text))
        finally:
            self._reader.close()
