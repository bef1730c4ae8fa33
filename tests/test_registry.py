"""
Tests for the PTY session registry, using real /bin/sh sessions.
"""

import pytest

from conftest import TEST_SHELL, requires_pty
from termalime.exceptions import (
    ReaderAlreadyTakenError,
    RegistryUnavailableError,
    SessionNotFoundError,
    SpawnError,
)
from termalime.services.terminal.pty_session import PtySize, resolve_shell
from termalime.services.terminal.registry import SessionRegistry

pytestmark = requires_pty


@pytest.fixture
def registry():
    registry = SessionRegistry(lock_timeout=0.5, close_timeout=1.0)
    yield registry
    registry.shutdown()


class TestPtySize:
    """Window size value type"""

    def test_defaults(self):
        size = PtySize()
        assert (size.cols, size.rows, size.pixel_width, size.pixel_height) == (80, 24, 0, 0)

    def test_rejects_values_outside_u16(self):
        with pytest.raises(ValueError):
            PtySize(cols=70000)
        with pytest.raises(ValueError):
            PtySize(rows=-1)

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            PtySize().cols = 100


class TestResolveShell:
    def test_override_wins(self, monkeypatch):
        monkeypatch.setenv("SHELL", "/bin/zsh")
        assert resolve_shell("/bin/dash") == "/bin/dash"

    def test_login_shell_then_bash(self, monkeypatch):
        monkeypatch.setenv("SHELL", "/bin/zsh")
        assert resolve_shell() == "/bin/zsh"

        monkeypatch.delenv("SHELL")
        assert resolve_shell() == "/bin/bash"


class TestSessionRegistry:
    """Session lifecycle and serialized access"""

    def test_create_and_remove(self, registry):
        session_id = registry.create_session(shell=TEST_SHELL)

        assert session_id in registry
        assert len(registry) == 1
        assert registry.session_ids() == [session_id]

        assert registry.remove_session(session_id) is True
        assert session_id not in registry
        assert registry.remove_session(session_id) is False

    def test_session_ids_are_unique(self, registry):
        first = registry.create_session(shell=TEST_SHELL)
        second = registry.create_session(shell=TEST_SHELL)

        assert first != second
        assert sorted(registry.session_ids()) == sorted([first, second])

    def test_unknown_session_raises_not_found(self, registry):
        with pytest.raises(SessionNotFoundError, match="PTY session nope not found"):
            registry.with_session("nope", lambda session: None)

    def test_with_session_returns_operation_result(self, registry):
        session_id = registry.create_session(shell=TEST_SHELL)

        assert registry.with_session(session_id, lambda session: session.id) == session_id

    def test_reader_can_only_be_taken_once(self, registry):
        session_id = registry.create_session(shell=TEST_SHELL)

        reader = registry.take_reader(session_id)
        try:
            with pytest.raises(ReaderAlreadyTakenError, match="already taken"):
                registry.take_reader(session_id)
        finally:
            reader.close()

    def test_resize_updates_size(self, registry):
        session_id = registry.create_session(PtySize(cols=100, rows=30), shell=TEST_SHELL)
        registry.with_session(session_id, lambda session: session.resize(PtySize(cols=132, rows=50)))

        [info] = registry.describe()
        assert info["session_id"] == session_id
        assert (info["cols"], info["rows"]) == (132, 50)
        assert info["shell"] == TEST_SHELL
        assert info["running"] is True

    def test_write_reaches_the_shell(self, registry):
        session_id = registry.create_session(shell=TEST_SHELL)

        registry.with_session(session_id, lambda session: session.write(b"true\n"))

    def test_remove_terminates_the_shell(self, registry):
        session_id = registry.create_session(shell=TEST_SHELL)
        process = registry.with_session(session_id, lambda session: session.process)

        registry.remove_session(session_id)

        assert process.poll() is not None

    def test_spawn_failure_raises_spawn_error(self, registry):
        with pytest.raises(SpawnError):
            registry.create_session(shell="/nonexistent/shell")
        assert len(registry) == 0

    def test_lock_timeout_raises_unavailable(self, registry):
        session_id = registry.create_session(shell=TEST_SHELL)

        # Re-entering the registry from inside an operation cannot get the lock
        with pytest.raises(RegistryUnavailableError):
            registry.with_session(session_id, lambda session: registry.session_ids())

        # Registry is still usable afterwards
        assert registry.session_ids() == [session_id]

    def test_shutdown_closes_everything_and_refuses_use(self, registry):
        session_id = registry.create_session(shell=TEST_SHELL)
        process = registry.with_session(session_id, lambda session: session.process)

        registry.shutdown()

        assert process.poll() is not None
        with pytest.raises(RegistryUnavailableError):
            registry.create_session(shell=TEST_SHELL)
        with pytest.raises(RegistryUnavailableError):
            registry.with_session(session_id, lambda session: None)

        # Repeated shutdown is harmless
        registry.shutdown()
