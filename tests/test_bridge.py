"""
End-to-end tests for the terminal bridge with real shells.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import async_wait_until, requires_pty
from termalime.exceptions import SessionNotFoundError
from termalime.services.terminal import PtySize, TerminalBridge, TerminalEventKind
from termalime.services.terminal.registry import SessionRegistry

pytestmark = requires_pty


@pytest.fixture
async def bridge(test_settings):
    bridge = TerminalBridge(settings=test_settings)
    yield bridge
    await bridge.shutdown()


def context_of(bridge: TerminalBridge, session_id: str) -> str:
    return bridge.get_terminal_context(session_id, 400).last_lines


class TestTerminalBridge:
    """Spawn, write, resize, context and teardown"""

    async def test_two_sessions_are_isolated(self, bridge):
        first = await bridge.spawn_session()
        second = await bridge.spawn_session()
        assert first != second

        await bridge.write_session(first, "echo alpha-marker\n")

        assert await async_wait_until(lambda: "alpha-marker" in context_of(bridge, first))
        await asyncio.sleep(0.2)
        assert "alpha-marker" not in context_of(bridge, second)

    async def test_removing_one_session_leaves_the_other(self, bridge):
        first = await bridge.spawn_session()
        second = await bridge.spawn_session()

        await bridge.close_session(first)

        assert not bridge.has_session(first)
        assert bridge.has_session(second)
        assert bridge.get_terminal_context(second).session_id == second
        with pytest.raises(SessionNotFoundError):
            bridge.get_terminal_context(first)
        with pytest.raises(SessionNotFoundError):
            await bridge.write_session(first, "ls\n")

    async def test_close_unknown_session(self, bridge):
        with pytest.raises(SessionNotFoundError):
            await bridge.close_session("missing")

    async def test_output_events_reach_subscribers(self, bridge):
        session_id = await bridge.spawn_session()
        queue = bridge.subscribe(session_id)
        try:
            await bridge.write_session(session_id, b"echo event-marker\n")

            received = ""
            while "event-marker" not in received:
                event = await asyncio.wait_for(queue.get(), timeout=5)
                assert event.kind == TerminalEventKind.OUTPUT
                assert event.session_id == session_id
                received += event.data
        finally:
            bridge.unsubscribe(queue)

    async def test_closing_session_ends_stream_with_eof(self, bridge):
        session_id = await bridge.spawn_session()
        queue = bridge.subscribe(session_id)
        try:
            await bridge.close_session(session_id)

            kinds = []
            while TerminalEventKind.EOF not in kinds:
                event = await asyncio.wait_for(queue.get(), timeout=5)
                kinds.append(event.kind)
            assert TerminalEventKind.ERROR not in kinds
        finally:
            bridge.unsubscribe(queue)

    async def test_resize_and_list(self, bridge):
        session_id = await bridge.spawn_session(size=PtySize(cols=90, rows=20))
        await bridge.resize_session(session_id, cols=120, rows=40, pixel_width=960)

        [info] = bridge.list_sessions()
        assert info["session_id"] == session_id
        assert (info["cols"], info["rows"]) == (120, 40)

    async def test_resize_rejects_out_of_range(self, bridge):
        session_id = await bridge.spawn_session()

        with pytest.raises(ValueError):
            await bridge.resize_session(session_id, cols=70000, rows=24)

    async def test_context_defaults_and_clamping(self, bridge):
        session_id = await bridge.spawn_session()
        await bridge.write_session(session_id, "for i in 1 2 3; do echo row-$i; done\n")
        assert await async_wait_until(lambda: "row-3" in context_of(bridge, session_id))

        context = bridge.get_terminal_context(session_id, max_lines=0)
        assert len(context.last_lines.split("\n")) == 1

    async def test_shutdown_closes_all_sessions(self, test_settings):
        bridge = TerminalBridge(settings=test_settings)
        await bridge.spawn_session()
        await bridge.spawn_session()

        await bridge.shutdown()

        assert bridge.readers == {}

    @pytest.mark.parametrize("data", [5, None, ["ls"], {"text": "ls"}])
    async def test_write_rejects_non_text_input(self, test_settings, data):
        registry = MagicMock(spec=SessionRegistry)
        bridge = TerminalBridge(settings=test_settings, registry=registry)

        with pytest.raises(ValueError, match="must be text"):
            await bridge.write_session("term-abc123", data)

        registry.with_session.assert_not_called()
