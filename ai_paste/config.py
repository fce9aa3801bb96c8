"""Application configuration and persisted user settings."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from PyQt5.QtGui import QColor

from .logging_utils import get_logger
from .ocr import BUILTIN_MODEL, DEFAULT_CHAT_URL, OcrProviderConfig, ProviderType

_LOGGER = get_logger(__name__)


class Config:
    """Application configuration"""
    APP_NAME = "AI Paste"
    VERSION = "1.0.0"

    # Global hotkeys (keyboard module names)
    HOTKEY_CONVERT = "ctrl+shift+v"
    HOTKEY_CAPTURE = "ctrl+shift+m"
    HOTKEY_POLL_INTERVAL_MS = 100

    CLIPBOARD_POLL_INTERVAL_MS = 500

    # Selection overlay settings
    SELECTION_COLOR = QColor(0, 120, 215, 200)
    SELECTION_BORDER_WIDTH = 2
    OVERLAY_OPACITY = 0.3
    MIN_SELECTION_SIZE = 10

    # Floating preview window
    FLOATING_WIDTH = 360
    FLOATING_HEIGHT = 480
    FLOATING_MARGIN = 20

    BUILTIN_ID = "builtin-siliconflow"
    BUILTIN_NAME = "Default (SiliconFlow)"
    BUILTIN_KEY_ENV = "AIPASTE_BUILTIN_API_KEY"


def builtin_provider() -> OcrProviderConfig:
    """The process-wide default provider. Its key comes from the environment."""
    return OcrProviderConfig(
        id=Config.BUILTIN_ID,
        name=Config.BUILTIN_NAME,
        type=ProviderType.SILICONFLOW,
        api_key=os.environ.get(Config.BUILTIN_KEY_ENV, ""),
        base_url=DEFAULT_CHAT_URL,
        model=BUILTIN_MODEL,
        is_builtin=True,
    )


def get_config_dir() -> Path:
    if sys.platform == "win32":
        return Path(os.getenv("APPDATA") or Path.home()) / "AIPaste"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "AIPaste"
    return Path(os.getenv("XDG_CONFIG_HOME") or Path.home() / ".config") / "aipaste"


DEFAULT_SETTINGS: Dict[str, Any] = {
    "selected_provider": Config.BUILTIN_ID,
    "providers": [],
    "math_mode": False,
    "auto_copy": True,
    "clipboard_watch": True,
    "auto_reveal": False,
    "always_on_top": False,
    "show_notifications": True,
}


class AppSettings:
    """User settings stored as JSON in the per-user config directory"""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_config_dir() / "settings.json"
        self.data: Dict[str, Any] = json.loads(json.dumps(DEFAULT_SETTINGS))
        self.load()

    def load(self):
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as e:
            _LOGGER.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            return
        if isinstance(raw, dict):
            self.data.update(raw)
        else:
            _LOGGER.warning("Ignoring settings file %s: not a JSON object", self.path)

    def save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(self.data, handle, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any):
        self.data[key] = value

    def providers(self) -> List[OcrProviderConfig]:
        """User-declared providers. Built-in flagged or malformed entries are skipped."""
        result = []
        for entry in self.data.get("providers") or []:
            if not isinstance(entry, dict):
                _LOGGER.warning("Skipping provider entry that is not an object: %r", entry)
                continue
            try:
                provider = OcrProviderConfig.from_dict(entry)
            except ValueError as e:
                _LOGGER.warning("Skipping provider entry: %s", e)
                continue
            if provider.is_builtin or provider.id == Config.BUILTIN_ID:
                _LOGGER.warning("Skipping provider %r: only one built-in is allowed", provider.id)
                continue
            result.append(provider)
        return result

    def add_provider(self, provider: OcrProviderConfig):
        """Add or replace a user provider (matched by id)"""
        if provider.is_builtin or provider.id == Config.BUILTIN_ID:
            raise ValueError("The built-in provider cannot be stored in settings")
        entries = [
            e for e in self.data.get("providers") or []
            if not (isinstance(e, dict) and e.get("id") == provider.id)
        ]
        entries.append(provider.to_dict())
        self.data["providers"] = entries

    def remove_provider(self, provider_id: str) -> bool:
        if provider_id == Config.BUILTIN_ID:
            raise ValueError("The built-in provider cannot be removed")
        entries = self.data.get("providers") or []
        kept = [e for e in entries if not (isinstance(e, dict) and e.get("id") == provider_id)]
        self.data["providers"] = kept
        if self.data.get("selected_provider") == provider_id:
            self.data["selected_provider"] = Config.BUILTIN_ID
        return len(kept) != len(entries)

    def selected_provider(self) -> Optional[OcrProviderConfig]:
        """The chosen user provider, or None meaning the built-in one"""
        selected = self.data.get("selected_provider")
        for provider in self.providers():
            if provider.id == selected:
                return provider
        return None
