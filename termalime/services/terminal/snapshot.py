"""
Terminal Snapshots

Bounded per-session record of recent output, used only as assistant context.
Stored as UTF-8 bytes so the cap is a byte cap; eviction is FIFO at byte
granularity and may split a multi-byte character at the cut, which decodes
as a replacement character.
"""

import threading

from termalime.config import CONTEXT_MAX_LINES, SNAPSHOT_MAX_BYTES


class TerminalSnapshot:
    """Append-only text buffer capped at ``max_bytes``"""

    def __init__(self, max_bytes: int = SNAPSHOT_MAX_BYTES, max_lines: int = CONTEXT_MAX_LINES):
        self.max_bytes = max_bytes
        self.max_lines = max_lines
        self._buffer = bytearray()
        self._lock = threading.Lock()

    def append(self, chunk: str) -> None:
        data = chunk.encode("utf-8")
        with self._lock:
            self._buffer.extend(data)
            overflow = len(self._buffer) - self.max_bytes
            if overflow > 0:
                del self._buffer[:overflow]

    def last_lines(self, limit: int) -> str:
        """
        Trailing ``limit`` lines (clamped to [1, max_lines]) joined by newlines,
        oldest first. Empty snapshot gives "".
        """
        limit = max(1, min(limit, self.max_lines))
        with self._lock:
            text = self._buffer.decode("utf-8", errors="replace")

        if not text:
            return ""
        lines = text.splitlines()
        return "\n".join(lines[-limit:])

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


class SnapshotStore:
    """One snapshot per session, guarded separately from the session registry"""

    def __init__(self, max_bytes: int = SNAPSHOT_MAX_BYTES, max_lines: int = CONTEXT_MAX_LINES):
        self._max_bytes = max_bytes
        self._max_lines = max_lines
        self._snapshots: dict[str, TerminalSnapshot] = {}
        self._lock = threading.Lock()

    def create(self, session_id: str) -> TerminalSnapshot:
        snapshot = TerminalSnapshot(self._max_bytes, self._max_lines)
        with self._lock:
            self._snapshots[session_id] = snapshot
        return snapshot

    def get(self, session_id: str) -> TerminalSnapshot | None:
        with self._lock:
            return self._snapshots.get(session_id)

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._snapshots.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._snapshots
