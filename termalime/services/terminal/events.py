"""
Terminal Event Channel

Carries output from blocking reader threads into the asyncio world.
Reader threads call publish(); asyncio consumers subscribe() and get an
asyncio.Queue that is fed with loop.call_soon_threadsafe. Plain callables
can be registered as listeners for synchronous consumers.
"""

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from termalime.utils.structured_logging import get_logger

logger = get_logger(__name__)


class TerminalEventKind(str, Enum):
    """Kinds of events a reader thread produces"""

    OUTPUT = "output"
    ERROR = "error"
    EOF = "eof"


@dataclass(frozen=True)
class TerminalEvent:
    """One chunk of terminal output (or the end of the stream)"""

    session_id: str
    kind: TerminalEventKind
    data: str = ""

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "session_id": self.session_id, "data": self.data}


@dataclass(eq=False)
class _QueueSubscriber:
    session_id: str | None
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue

    def deliver(self, event: TerminalEvent) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, event)


class TerminalEventChannel:
    """Thread-safe fan-out of TerminalEvents"""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: list[_QueueSubscriber] = []
        self._listeners: list[Callable[[TerminalEvent], None]] = []

    def subscribe(self, session_id: str | None = None) -> asyncio.Queue:
        """
        Register an asyncio consumer.

        Must be called from a running event loop.

        Args:
            session_id: Only deliver events for this session (None = all sessions)

        Returns:
            Queue receiving TerminalEvent objects
        """
        loop = asyncio.get_running_loop()
        subscriber = _QueueSubscriber(session_id=session_id, loop=loop, queue=asyncio.Queue())
        with self._lock:
            self._subscribers.append(subscriber)
        return subscriber.queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._subscribers = [s for s in self._subscribers if s.queue is not queue]

    def add_listener(self, listener: Callable[[TerminalEvent], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[TerminalEvent], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def publish(self, event: TerminalEvent) -> None:
        """Deliver an event to every matching consumer. Safe from any thread."""
        with self._lock:
            subscribers = [
                s for s in self._subscribers if s.session_id in (None, event.session_id)
            ]
            listeners = list(self._listeners)

        for subscriber in subscribers:
            try:
                subscriber.deliver(event)
            except RuntimeError:
                # Event loop already closed
                logger.warning("Dropping subscriber with closed event loop", session_id=event.session_id)
                self.unsubscribe(subscriber.queue)

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error("Terminal event listener failed", error=e, session_id=event.session_id)
