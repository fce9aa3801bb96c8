"""AI Paste: screenshot and clipboard OCR with rich-text paste."""

from .clipboard import ClipboardManager, ClipboardSnapshot, ClipboardWatcher, has_changed
from .ocr import (
    OcrDispatcher, OcrProviderConfig, OcrRequest, OcrResult, ProviderType,
    has_latex, perform_ocr
)

__version__ = "1.0.0"

__all__ = [
    "ClipboardManager",
    "ClipboardSnapshot",
    "ClipboardWatcher",
    "has_changed",
    "OcrDispatcher",
    "OcrProviderConfig",
    "OcrRequest",
    "OcrResult",
    "ProviderType",
    "has_latex",
    "perform_ocr",
]
