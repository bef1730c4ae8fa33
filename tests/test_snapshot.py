"""
Tests for terminal output snapshots.
"""

import threading

from termalime.services.terminal.snapshot import SnapshotStore, TerminalSnapshot


class TestTerminalSnapshot:
    """Bounded recent-output buffer"""

    def test_empty_snapshot_returns_empty_string(self):
        assert TerminalSnapshot().last_lines(10) == ""

    def test_last_lines_keeps_chronological_order(self):
        snapshot = TerminalSnapshot()
        snapshot.append("first\nsecond\n")
        snapshot.append("third\nfourth\n")

        assert snapshot.last_lines(3) == "second\nthird\nfourth"

    def test_chunks_split_mid_line_join_up(self):
        snapshot = TerminalSnapshot()
        snapshot.append("hel")
        snapshot.append("lo\nwor")
        snapshot.append("ld")

        assert snapshot.last_lines(5) == "hello\nworld"

    def test_request_below_one_is_clamped_to_one(self):
        snapshot = TerminalSnapshot()
        snapshot.append("a\nb\nc\n")

        assert snapshot.last_lines(0) == "c"
        assert snapshot.last_lines(-5) == "c"

    def test_request_is_capped_at_max_lines(self):
        snapshot = TerminalSnapshot()
        snapshot.append("".join(f"line-{i}\n" for i in range(500)))

        lines = snapshot.last_lines(1000).split("\n")

        assert len(lines) == 400
        assert lines[0] == "line-100"
        assert lines[-1] == "line-499"

    def test_byte_length_never_exceeds_cap(self):
        snapshot = TerminalSnapshot()
        for _ in range(50):
            snapshot.append("x" * 1000 + "\n")
            assert len(snapshot) <= 16384

        assert len(snapshot) == 16384

    def test_oldest_bytes_are_evicted_first(self):
        snapshot = TerminalSnapshot(max_bytes=10)
        snapshot.append("0123456789")
        snapshot.append("abc")

        assert len(snapshot) == 10
        assert snapshot.last_lines(1) == "3456789abc"

    def test_single_oversized_append_keeps_tail(self):
        snapshot = TerminalSnapshot(max_bytes=8)
        snapshot.append("abcdefghijklmnop")

        assert snapshot.last_lines(1) == "ijklmnop"

    def test_eviction_inside_multibyte_character_decodes_with_replacement(self):
        snapshot = TerminalSnapshot(max_bytes=5)
        snapshot.append("ééé")  # 6 bytes

        text = snapshot.last_lines(1)

        assert len(snapshot) == 5
        assert text.endswith("éé")
        assert text.startswith("�")

    def test_carriage_returns_are_line_breaks(self):
        snapshot = TerminalSnapshot()
        snapshot.append("$ ls\r\nfile.txt\r\n$ ")

        assert snapshot.last_lines(2) == "file.txt\n$ "

    def test_clear(self):
        snapshot = TerminalSnapshot()
        snapshot.append("data")
        snapshot.clear()

        assert len(snapshot) == 0
        assert snapshot.last_lines(5) == ""

    def test_concurrent_appends_respect_cap(self):
        snapshot = TerminalSnapshot(max_bytes=1024)

        def writer():
            for _ in range(200):
                snapshot.append("y" * 37)

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(snapshot) == 1024


class TestSnapshotStore:
    """Per-session snapshot bookkeeping"""

    def test_create_get_discard(self):
        store = SnapshotStore()
        snapshot = store.create("s1")

        assert store.get("s1") is snapshot
        assert "s1" in store

        store.discard("s1")
        assert store.get("s1") is None
        assert "s1" not in store

    def test_discard_unknown_is_noop(self):
        SnapshotStore().discard("missing")

    def test_snapshots_are_independent(self):
        store = SnapshotStore(max_bytes=64, max_lines=10)
        first = store.create("a")
        second = store.create("b")
        first.append("only in a\n")

        assert second.last_lines(10) == ""
        assert first.max_bytes == 64
        assert first.max_lines == 10
