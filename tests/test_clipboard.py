"""
Unit tests for clipboard snapshots, the watch loop and clipboard writes
"""

import pytest
from PyQt5.QtWidgets import QApplication

from ai_paste.clipboard import (
    POLL_INTERVAL_MS, RTF_MIME_TYPES, ClipboardManager, ClipboardSnapshot,
    ClipboardWatcher, has_changed
)


class FakeClipboard:
    """Snapshot source whose contents the test sets directly"""

    def __init__(self, snapshot=None):
        self.snapshot = snapshot or ClipboardSnapshot()
        self.error = None
        self.reads = 0

    def set(self, **kwargs):
        self.snapshot = ClipboardSnapshot(**kwargs)

    def __call__(self):
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


@pytest.fixture
def source():
    return FakeClipboard()


@pytest.fixture
def watcher(qapp, source):
    watcher = ClipboardWatcher(snapshot_source=source)
    yield watcher
    watcher.stop()


@pytest.fixture
def events(watcher):
    received = {"changed": [], "reveal": 0}

    def on_reveal():
        received["reveal"] += 1

    watcher.clipboard_changed.connect(received["changed"].append)
    watcher.reveal_requested.connect(on_reveal)
    return received


class TestSnapshotComparison:
    """Test which clipboard differences count as a change"""

    def test_identical_snapshots(self):
        assert not has_changed(ClipboardSnapshot("a", "<b>a</b>"), ClipboardSnapshot("a", "<b>a</b>"))

    def test_text_difference(self):
        assert has_changed(ClipboardSnapshot("a", ""), ClipboardSnapshot("b", ""))

    def test_html_only_difference(self):
        assert has_changed(ClipboardSnapshot("a", "<p>a</p>"), ClipboardSnapshot("a", "<p><b>a</b></p>"))

    def test_rtf_and_formats_ignored(self):
        before = ClipboardSnapshot("a", "", rtf="{\\rtf1 a}", formats=frozenset({"text/plain"}))
        after = ClipboardSnapshot("a", "", rtf="{\\rtf1 b}", formats=frozenset({"text/rtf"}))
        assert not has_changed(before, after)
        assert before == after

    def test_payload_shape(self):
        snapshot = ClipboardSnapshot("t", "h", "r", frozenset({"text/plain", "text/html"}))
        assert snapshot.to_payload() == {
            "text": "t",
            "html": "h",
            "rtf": "r",
            "formats": ["text/html", "text/plain"],
        }


class TestClipboardWatcher:
    """Test the polling watch loop"""

    def test_default_interval(self, watcher):
        assert watcher.timer.interval() == POLL_INTERVAL_MS == 500

    def test_start_seeds_without_emitting(self, watcher, source, events):
        source.set(text="already there")
        watcher.start()
        assert watcher.is_running()
        assert watcher.last_snapshot == ClipboardSnapshot("already there")
        assert watcher.tick() is False
        assert events["changed"] == []

    def test_first_tick_without_seed_emits(self, watcher, source, events):
        source.set(text="hello")
        assert watcher.tick() is True
        assert events["changed"][0]["text"] == "hello"

    def test_no_repeat_for_same_content(self, watcher, source, events):
        watcher.start()
        source.set(text="one")
        assert watcher.tick() is True
        assert watcher.tick() is False
        assert watcher.tick() is False
        assert len(events["changed"]) == 1

    def test_html_only_change_emits(self, watcher, source, events):
        source.set(text="same", html="<p>same</p>")
        watcher.start()
        source.set(text="same", html="<p><i>same</i></p>")
        assert watcher.tick() is True
        assert events["changed"][-1]["html"] == "<p><i>same</i></p>"

    def test_rtf_only_change_is_silent(self, watcher, source, events):
        source.set(text="same", rtf="{\\rtf1 one}")
        watcher.start()
        source.set(text="same", rtf="{\\rtf1 two}")
        assert watcher.tick() is False
        assert events["changed"] == []

    def test_payload_carries_all_fields(self, watcher, source, events):
        watcher.start()
        source.set(text="x", html="<b>x</b>", rtf="{\\rtf1 x}",
                   formats=frozenset({"text/plain", "text/html", "text/rtf"}))
        watcher.tick()
        assert events["changed"] == [{
            "text": "x",
            "html": "<b>x</b>",
            "rtf": "{\\rtf1 x}",
            "formats": ["text/html", "text/plain", "text/rtf"],
        }]

    def test_disarmed_tick_does_nothing(self, watcher, source, events):
        watcher.start()
        watcher.set_enabled(False)
        reads = source.reads
        source.set(text="ignored")
        assert watcher.tick() is False
        assert source.reads == reads
        assert events["changed"] == []

    def test_rearm_compares_against_last_seen(self, watcher, source, events):
        source.set(text="A")
        watcher.start()
        assert watcher.set_enabled(False) is False
        source.set(text="B")
        watcher.tick()
        assert watcher.set_enabled(True) is True
        assert watcher.tick() is True
        assert events["changed"][-1]["text"] == "B"

    def test_rearm_after_returning_to_old_value(self, watcher, source, events):
        source.set(text="A")
        watcher.start()
        watcher.set_enabled(False)
        source.set(text="B")
        source.set(text="A")
        watcher.set_enabled(True)
        assert watcher.tick() is False
        assert events["changed"] == []

    def test_start_and_stop_are_idempotent(self, watcher, source):
        source.set(text="A")
        watcher.start()
        source.set(text="B")
        watcher.start()
        # Second start must not reseed
        assert watcher.last_snapshot.text == "A"
        watcher.stop()
        watcher.stop()
        assert not watcher.is_running()

    def test_read_error_propagates_from_tick(self, watcher, source):
        source.error = RuntimeError("clipboard locked")
        with pytest.raises(RuntimeError):
            watcher.tick()

    def test_timer_slot_survives_read_error(self, watcher, source):
        watcher.start()
        source.error = RuntimeError("clipboard locked")
        watcher._on_timeout()
        assert watcher.is_running()
        source.error = None
        source.set(text="after")
        assert watcher.tick() is True

    def test_auto_reveal_on_text_change(self, watcher, source, events):
        watcher.start()
        assert watcher.set_auto_reveal(True) is True
        source.set(text="show me")
        watcher.tick()
        assert events["reveal"] == 1

    def test_auto_reveal_skips_empty_text(self, watcher, source, events):
        source.set(text="x")
        watcher.start()
        watcher.set_auto_reveal(True)
        source.set(text="", html="<img src='a.png'>")
        assert watcher.tick() is True
        assert events["reveal"] == 0

    def test_no_reveal_when_switched_off(self, watcher, source, events):
        watcher.start()
        source.set(text="quiet")
        watcher.tick()
        assert not watcher.auto_reveal_enabled()
        assert events["reveal"] == 0

    def test_timer_drives_ticks(self, qapp, qtbot, source):
        watcher = ClipboardWatcher(snapshot_source=source, interval_ms=10)
        watcher.start()
        try:
            source.set(text="from timer")
            with qtbot.waitSignal(watcher.clipboard_changed, timeout=2000) as blocker:
                pass
            assert blocker.args[0]["text"] == "from timer"
        finally:
            watcher.stop()


class TestClipboardManager:
    """Test reading and writing the real (offscreen) clipboard"""

    def test_rich_write_sets_all_flavours(self, clean_clipboard):
        assert ClipboardManager.write(text="x", html="<b>x</b>", rtf="{\\rtf1 x}") is True

        snapshot = ClipboardManager.take_snapshot()
        assert snapshot.text == "x"
        assert "<b>x</b>" in snapshot.html
        assert snapshot.rtf == "{\\rtf1 x}"
        assert "text/html" in snapshot.formats

    def test_rich_write_offers_rtf_under_every_platform_name(self, clean_clipboard):
        ClipboardManager.write(text="x", html="<b>x</b>", rtf="{\\rtf1 x}")

        mime = QApplication.clipboard().mimeData()
        for mime_type in RTF_MIME_TYPES:
            assert mime.hasFormat(mime_type), mime_type
            assert bytes(mime.data(mime_type)) == b"{\\rtf1 x}"

    def test_rich_write_fills_missing_text(self, clean_clipboard):
        ClipboardManager.write(html="<p>only html</p>")
        snapshot = ClipboardManager.take_snapshot()
        assert snapshot.text == ""
        assert "only html" in snapshot.html

    def test_plain_write(self, clean_clipboard):
        assert ClipboardManager.write(text="plain") is True
        assert ClipboardManager.get_text() == "plain"
        assert ClipboardManager.take_snapshot().html == ""

    def test_empty_write_leaves_clipboard_alone(self, clean_clipboard):
        ClipboardManager.copy_text("keep me")
        assert ClipboardManager.write() is True
        assert ClipboardManager.get_text() == "keep me"

    def test_get_content_keys(self, clean_clipboard):
        ClipboardManager.copy_text("abc")
        content = ClipboardManager.get_content()
        assert set(content) == {"text", "html", "rtf", "formats"}
        assert content["text"] == "abc"
        assert isinstance(content["formats"], list)
