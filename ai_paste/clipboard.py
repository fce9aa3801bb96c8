"""Clipboard snapshots, change detection and the polling watch loop.

Qt only raises ``dataChanged`` reliably for the process that owns the
clipboard, so changes made by other applications are found by polling:
every 500 ms a :class:`ClipboardSnapshot` is taken and compared with the
last one seen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Optional

from PyQt5.QtCore import QMimeData, QObject, QTimer, pyqtSignal
from PyQt5.QtGui import QClipboard
from PyQt5.QtWidgets import QApplication

from .logging_utils import get_logger

_LOGGER = get_logger(__name__)

POLL_INTERVAL_MS = 500

# Platform spellings of the RTF flavour, in lookup order
RTF_MIME_TYPES = (
    "text/rtf",
    "application/rtf",
    'application/x-qt-windows-mime;value="Rich Text Format"',
)


@dataclass(frozen=True)
class ClipboardSnapshot:
    """Clipboard contents at one instant.

    Equality only looks at ``text`` and ``html``: rich editors often update
    one while the other stays put, and both must count as a change.
    ``rtf`` and ``formats`` ride along for listeners.
    """

    text: str = ""
    html: str = ""
    rtf: str = field(default="", compare=False)
    formats: FrozenSet[str] = field(default_factory=frozenset, compare=False)

    def to_payload(self) -> Dict[str, object]:
        return {
            "text": self.text,
            "html": self.html,
            "rtf": self.rtf,
            "formats": sorted(self.formats),
        }


def has_changed(previous: ClipboardSnapshot, current: ClipboardSnapshot) -> bool:
    """True iff the plain text or the HTML differs"""
    return previous.text != current.text or previous.html != current.html


def _read_rtf(mime: QMimeData) -> str:
    for mime_type in RTF_MIME_TYPES:
        if mime.hasFormat(mime_type):
            return bytes(mime.data(mime_type)).decode("utf-8", errors="replace")
    return ""


class ClipboardManager:
    """Reads and writes the system clipboard"""

    @staticmethod
    def take_snapshot() -> ClipboardSnapshot:
        """Capture text, HTML, RTF and the format list without touching the clipboard"""
        clipboard = QApplication.clipboard()
        mime = clipboard.mimeData()
        if mime is None:
            return ClipboardSnapshot()
        return ClipboardSnapshot(
            text=mime.text() if mime.hasText() else "",
            html=mime.html() if mime.hasHtml() else "",
            rtf=_read_rtf(mime),
            formats=frozenset(mime.formats()),
        )

    @staticmethod
    def get_content() -> Dict[str, object]:
        return ClipboardManager.take_snapshot().to_payload()

    @staticmethod
    def write(
        text: Optional[str] = None,
        html: Optional[str] = None,
        rtf: Optional[str] = None,
    ) -> bool:
        """
        Write a paste payload.

        With ``html`` the text, HTML and RTF flavours are written together so
        the paste target can pick one; missing fields become empty strings.
        With only ``text`` a plain-text write is made. With neither, nothing
        is written and True is still returned.

        Returns:
            True once the payload has been handed to the clipboard
        """
        if html:
            mime = QMimeData()
            mime.setText(text or "")
            mime.setHtml(html)
            rtf_bytes = (rtf or "").encode("utf-8")
            for mime_type in RTF_MIME_TYPES:
                mime.setData(mime_type, rtf_bytes)
            QApplication.clipboard().setMimeData(mime, QClipboard.Clipboard)
            _LOGGER.debug("Wrote rich payload (%d chars of HTML)", len(html))
        elif text:
            ClipboardManager.copy_text(text)
        return True

    @staticmethod
    def copy_text(text: str) -> bool:
        """Copy plain text to the clipboard (and the X11 selection where there is one)"""
        clipboard = QApplication.clipboard()
        clipboard.setText(text, QClipboard.Clipboard)
        if clipboard.supportsSelection():
            clipboard.setText(text, QClipboard.Selection)
        return True

    @staticmethod
    def get_text() -> str:
        """Get current clipboard text"""
        return QApplication.clipboard().text()


class ClipboardWatcher(QObject):
    """
    Polls the clipboard and reports real content changes.

    Two independent switches control it: ``enabled`` (armed/disarmed; a
    disarmed tick does nothing) and ``auto_reveal`` (after a change with
    non-empty text, also emit ``reveal_requested``; the UI decides whether
    its window focus allows showing anything).
    """

    clipboard_changed = pyqtSignal(dict)
    reveal_requested = pyqtSignal()

    def __init__(
        self,
        snapshot_source: Optional[Callable[[], ClipboardSnapshot]] = None,
        interval_ms: int = POLL_INTERVAL_MS,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._take_snapshot = snapshot_source or ClipboardManager.take_snapshot
        self._last: Optional[ClipboardSnapshot] = None
        self._enabled = True
        self._auto_reveal = False

        self.timer = QTimer(self)
        self.timer.setInterval(interval_ms)
        self.timer.timeout.connect(self._on_timeout)

    @property
    def last_snapshot(self) -> Optional[ClipboardSnapshot]:
        return self._last

    def start(self):
        """Seed the last snapshot and start polling. No-op while running."""
        if self.timer.isActive():
            return
        self._last = self._take_snapshot()
        self.timer.start()
        _LOGGER.info("Clipboard watch started (%d ms)", self.timer.interval())

    def stop(self):
        if not self.timer.isActive():
            return
        self.timer.stop()
        _LOGGER.info("Clipboard watch stopped")

    def is_running(self) -> bool:
        return self.timer.isActive()

    def set_enabled(self, enabled: bool) -> bool:
        self._enabled = bool(enabled)
        return self._enabled

    def is_enabled(self) -> bool:
        return self._enabled

    def set_auto_reveal(self, enabled: bool) -> bool:
        self._auto_reveal = bool(enabled)
        return self._auto_reveal

    def auto_reveal_enabled(self) -> bool:
        return self._auto_reveal

    def tick(self) -> bool:
        """
        Run one comparison step.

        Returns:
            True if a change notification was emitted. Errors from reading
            the clipboard propagate to the caller.
        """
        if not self._enabled:
            return False

        current = self._take_snapshot()
        if self._last is not None and not has_changed(self._last, current):
            return False

        self._last = current
        self.clipboard_changed.emit(current.to_payload())

        if self._auto_reveal and current.text:
            self.reveal_requested.emit()
        return True

    def _on_timeout(self):
        try:
            self.tick()
        except Exception:
            # Only this tick is lost; the timer keeps going
            _LOGGER.exception("Clipboard read failed")
