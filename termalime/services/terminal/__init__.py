"""
Terminal Services Package

Provides the embedded-terminal engine:
- PTY-based sessions and the session registry
- Background reader threads and the event channel
- Bounded output snapshots for assistant context
"""

from .bridge import TerminalBridge, TerminalContext
from .events import TerminalEvent, TerminalEventChannel, TerminalEventKind
from .pty_session import PtyReader, PtySession, PtySize, PtyWriter
from .reader import ReaderTask
from .registry import SessionRegistry
from .snapshot import SnapshotStore, TerminalSnapshot

__all__ = [
    "PtyReader",
    "PtySession",
    "PtySize",
    "PtyWriter",
    "ReaderTask",
    "SessionRegistry",
    "SnapshotStore",
    "TerminalBridge",
    "TerminalContext",
    "TerminalEvent",
    "TerminalEventChannel",
    "TerminalEventKind",
    "TerminalSnapshot",
]
