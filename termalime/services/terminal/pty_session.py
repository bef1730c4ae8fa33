#!/usr/bin/env python3
"""
PTY-based Terminal Session

One pseudo-terminal pair, its child shell and the master-side handles:
- Master fd (kept for window-size changes)
- Writer half (user input)
- Reader half (detached exactly once for the background reader thread)

Sessions are owned by SessionRegistry; callers never hold one directly.
"""

import contextlib
import errno
import fcntl
import os
import pty
import signal
import struct
import subprocess
import termios
import uuid
from dataclasses import dataclass, field

from termalime.exceptions import PtyIOError, ReaderAlreadyTakenError, SpawnError
from termalime.utils.structured_logging import get_logger

logger = get_logger(__name__)

FALLBACK_SHELL = "/bin/bash"
TERM_TYPE = "xterm-256color"

_U16_MAX = 0xFFFF


@dataclass(frozen=True)
class PtySize:
    """Terminal window size in character cells and pixels"""

    cols: int = 80
    rows: int = 24
    pixel_width: int = 0
    pixel_height: int = 0

    def __post_init__(self):
        for name in ("cols", "rows", "pixel_width", "pixel_height"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 <= value <= _U16_MAX:
                raise ValueError(f"{name} must be an unsigned 16-bit integer, got {value!r}")

    def pack(self) -> bytes:
        """struct winsize layout expected by TIOCSWINSZ"""
        return struct.pack("HHHH", self.rows, self.cols, self.pixel_width, self.pixel_height)


def resolve_shell(shell: str | None = None) -> str:
    """Shell override, else the user's login shell, else /bin/bash"""
    return shell or os.environ.get("SHELL") or FALLBACK_SHELL


def _set_controlling_tty():
    # Runs in the child after setsid(): make the PTY slave (stdin) the controlling terminal
    with contextlib.suppress(OSError):
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class PtyReader:
    """Read half of a PTY master. Owned by exactly one reader thread."""

    def __init__(self, fd: int):
        self._fd = fd
        self._closed = False

    def read(self, size: int) -> bytes:
        """
        Blocking read of up to ``size`` bytes.

        Returns b"" at end of stream. On Linux the master reports EIO once
        the slave side is gone (child exited), which is end of stream too.
        """
        try:
            return os.read(self._fd, size)
        except OSError as e:
            if e.errno == errno.EIO:
                return b""
            raise

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            with contextlib.suppress(OSError):
                os.close(self._fd)


class PtyWriter:
    """Write half of a PTY master."""

    def __init__(self, fd: int):
        self._fd = fd
        self._closed = False

    def write_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(self._fd, view)
            view = view[written:]

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            with contextlib.suppress(OSError):
                os.close(self._fd)


@dataclass(eq=False)
class PtySession:
    """Interactive terminal session backed by a PTY"""

    id: str
    shell: str
    master_fd: int
    process: subprocess.Popen
    writer: PtyWriter
    reader: PtyReader | None
    size: PtySize = field(default_factory=PtySize)
    closed: bool = False

    @classmethod
    def spawn(cls, size: PtySize | None = None, shell: str | None = None) -> "PtySession":
        """
        Open a PTY pair and start a shell on its slave side.

        Args:
            size: Initial window size (default 80x24)
            shell: Shell override (defaults to $SHELL, then /bin/bash)

        Returns:
            Ready PtySession

        Raises:
            SpawnError: If the PTY cannot be allocated or the shell cannot start
        """
        size = size or PtySize()
        shell_cmd = resolve_shell(shell)

        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise SpawnError(f"failed to open PTY pair: {e}") from e

        try:
            fcntl.ioctl(master_fd, termios.TIOCSWINSZ, size.pack())

            env = os.environ.copy()
            env["TERM"] = TERM_TYPE

            process = subprocess.Popen(
                [shell_cmd],
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                env=env,
                start_new_session=True,
                preexec_fn=_set_controlling_tty,
                close_fds=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            os.close(slave_fd)
            raise SpawnError(f"failed to spawn child process {shell_cmd}: {e}") from e

        # Parent does not need the slave side
        os.close(slave_fd)

        try:
            reader = PtyReader(os.dup(master_fd))
            writer = PtyWriter(os.dup(master_fd))
        except OSError as e:
            process.kill()
            process.wait()
            os.close(master_fd)
            raise SpawnError(f"failed to clone PTY handles: {e}") from e

        session = cls(
            id=str(uuid.uuid4()),
            shell=shell_cmd,
            master_fd=master_fd,
            process=process,
            writer=writer,
            reader=reader,
            size=size,
        )
        logger.info("PTY session spawned", session_id=session.id, shell=shell_cmd, pid=process.pid)
        return session

    @property
    def pid(self) -> int:
        return self.process.pid

    def write(self, data: bytes) -> None:
        """Write raw bytes to the shell"""
        try:
            self.writer.write_all(data)
        except OSError as e:
            raise PtyIOError(f"failed to write to PTY: {e}") from e

    def resize(self, size: PtySize) -> None:
        """Change the terminal window size"""
        try:
            fcntl.ioctl(self.master_fd, termios.TIOCSWINSZ, size.pack())
        except OSError as e:
            raise PtyIOError(f"failed to resize PTY: {e}") from e
        self.size = size

    def take_reader(self) -> PtyReader:
        """Detach the read half. Only the first call succeeds."""
        if self.reader is None:
            raise ReaderAlreadyTakenError(self.id)
        reader, self.reader = self.reader, None
        return reader

    def close(self, timeout: float = 2.0) -> None:
        """Release the PTY and terminate the child shell"""
        if self.closed:
            return
        self.closed = True

        self.writer.close()
        if self.reader is not None:
            self.reader.close()
            self.reader = None
        with contextlib.suppress(OSError):
            os.close(self.master_fd)

        if self.process.poll() is None:
            with contextlib.suppress(ProcessLookupError, PermissionError):
                os.killpg(self.process.pid, signal.SIGHUP)
            try:
                self.process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Shell ignored SIGHUP, killing", session_id=self.id, pid=self.pid)
                self.process.kill()
                self.process.wait()

        logger.info("PTY session closed", session_id=self.id, returncode=self.process.returncode)
