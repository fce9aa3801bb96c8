"""Screen capture helpers producing PNG data URLs for OCR."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Optional

from PyQt5.QtCore import QBuffer, QByteArray, QIODevice, QRect
from PyQt5.QtGui import QGuiApplication, QPixmap

from .logging_utils import get_logger

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class CaptureResult:
    """Captured image as a data URL, or the reason there is none."""

    success: bool
    image_data: Optional[str] = None
    error: Optional[str] = None


def pixmap_to_data_url(pixmap: QPixmap) -> str:
    """Encode a pixmap as ``data:image/png;base64,...``"""
    data = QByteArray()
    buffer = QBuffer(data)
    buffer.open(QIODevice.WriteOnly)
    pixmap.save(buffer, "PNG")
    buffer.close()
    return "data:image/png;base64," + base64.b64encode(bytes(data)).decode("ascii")


def _result_from_pixmap(pixmap: QPixmap, what: str) -> CaptureResult:
    if pixmap is None or pixmap.isNull():
        _LOGGER.warning("Capture of %s returned an empty image", what)
        return CaptureResult(success=False, error=f"Failed to capture {what}")
    return CaptureResult(success=True, image_data=pixmap_to_data_url(pixmap))


def capture_full_screen() -> CaptureResult:
    """Capture the whole primary display"""
    screen = QGuiApplication.primaryScreen()
    if screen is None:
        return CaptureResult(success=False, error="No screen sources found")
    return _result_from_pixmap(screen.grabWindow(0), "screen")


def grab_region(rect: QRect) -> QPixmap:
    """Grab ``rect`` (virtual desktop coordinates) from the screen it lies on."""
    # Coordinates handed to grabWindow are relative to the screen's origin
    for screen in QGuiApplication.screens():
        geometry = screen.geometry()
        if geometry.intersects(rect):
            return screen.grabWindow(
                0,
                rect.x() - geometry.x(),
                rect.y() - geometry.y(),
                rect.width(),
                rect.height(),
            )

    screen = QGuiApplication.primaryScreen()
    return screen.grabWindow(0, rect.x(), rect.y(), rect.width(), rect.height())


def capture_region(rect: QRect) -> CaptureResult:
    """Capture a user-selected rectangle"""
    if rect.isNull() or rect.width() <= 0 or rect.height() <= 0:
        return CaptureResult(success=False, error="Empty selection")
    return _result_from_pixmap(grab_region(rect), "screen region")
