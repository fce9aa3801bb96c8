#!/usr/bin/env python3
"""
AI Paste
Tray tool that turns screenshots and clipboard content into rich text
ready to paste into Word and other editors.

Usage:
    python -m ai_paste

Hotkeys: Ctrl+Shift+M captures a screen region and runs OCR on it,
Ctrl+Shift+V converts the clipboard content and shows the main window.
Press ESC to cancel a selection.
"""

import asyncio
import concurrent.futures
import sys
import threading
import uuid
from typing import Optional

import aiohttp
from PyQt5.QtCore import QEvent, QObject, QPoint, QRect, Qt, QTimer, pyqtSignal
from PyQt5.QtGui import (
    QColor, QCursor, QFont, QFontMetrics, QGuiApplication, QIcon,
    QPainter, QPen, QPixmap
)
from PyQt5.QtWidgets import (
    QAction, QApplication, QCheckBox, QComboBox, QDialog, QFormLayout,
    QGroupBox, QHBoxLayout, QLabel, QLineEdit, QMainWindow, QMenu,
    QPushButton, QSystemTrayIcon, QTextEdit, QVBoxLayout, QWidget
)

from .capture import CaptureResult, capture_full_screen, capture_region
from .clipboard import ClipboardManager, ClipboardWatcher
from .config import AppSettings, Config, builtin_provider
from .logging_utils import get_logger
from .markup import rich_payload
from .ocr import OcrDispatcher, OcrProviderConfig, OcrRequest, OcrResult, ProviderType

# Keyboard hotkey support
try:
    import keyboard
    KEYBOARD_AVAILABLE = True
except ImportError:
    KEYBOARD_AVAILABLE = False

_LOGGER = get_logger(__name__)

# Time for the overlay to disappear from the screen before grabbing
CAPTURE_DELAY_MS = 150


class SelectionOverlay(QWidget):
    """
    Fullscreen transparent overlay for picking the OCR region.
    Spans every screen so the selection can start on any monitor.
    """

    selection_made = pyqtSignal(QRect)  # virtual desktop coordinates
    selection_cancelled = pyqtSignal()

    def __init__(self):
        super().__init__()
        self.selecting = False
        self.start_point = QPoint()
        self.selection_rect = QRect()

        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setMouseTracking(True)
        self.setCursor(Qt.CrossCursor)
        self.setGeometry(self._combined_screen_geometry())

        self.instruction_text = "Drag to select region for OCR. Press ESC to cancel."

    @staticmethod
    def _combined_screen_geometry() -> QRect:
        screens = QGuiApplication.screens()
        if not screens:
            return QRect(0, 0, 1920, 1080)
        combined = screens[0].geometry()
        for screen in screens[1:]:
            combined = combined.united(screen.geometry())
        return combined

    def start_selection(self):
        self.setGeometry(self._combined_screen_geometry())
        self.selecting = False
        self.selection_rect = QRect()
        self.show()
        self.activateWindow()
        self.raise_()
        self.setFocus()
        self.update()

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        painter.fillRect(self.rect(), QColor(0, 0, 0, int(255 * Config.OVERLAY_OPACITY)))

        if not self.selection_rect.isNull():
            painter.setCompositionMode(QPainter.CompositionMode_Source)
            painter.fillRect(self.selection_rect, Qt.transparent)
            painter.setCompositionMode(QPainter.CompositionMode_SourceOver)

            pen = QPen(Config.SELECTION_COLOR)
            pen.setWidth(Config.SELECTION_BORDER_WIDTH)
            painter.setPen(pen)
            painter.setBrush(Qt.NoBrush)
            painter.drawRect(self.selection_rect)

            size_text = f"{self.selection_rect.width()} x {self.selection_rect.height()}"
            painter.setFont(QFont("Segoe UI", 10))
            painter.setPen(Qt.white)
            text_pos = self.selection_rect.topLeft() - QPoint(0, 8)
            if text_pos.y() < 20:
                text_pos = self.selection_rect.bottomLeft() + QPoint(0, 18)
            painter.drawText(text_pos, size_text)

        if not self.selecting:
            font = QFont("Segoe UI", 12)
            painter.setFont(font)
            hint_rect = QFontMetrics(font).boundingRect(self.instruction_text)
            hint_rect.moveCenter(QPoint(self.width() // 2, 50))
            hint_rect.adjust(-20, -10, 20, 10)
            painter.fillRect(hint_rect, QColor(0, 0, 0, 200))
            painter.setPen(Qt.white)
            painter.drawText(hint_rect, Qt.AlignCenter, self.instruction_text)

    def mousePressEvent(self, event):
        if event.button() == Qt.LeftButton:
            self.selecting = True
            self.start_point = event.pos()
            self.selection_rect = QRect(self.start_point, self.start_point)
            self.update()

    def mouseMoveEvent(self, event):
        if self.selecting:
            self.selection_rect = QRect(self.start_point, event.pos()).normalized()
            self.update()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.LeftButton or not self.selecting:
            return
        self.selecting = False
        rect = self.selection_rect
        if rect.width() > Config.MIN_SELECTION_SIZE and rect.height() > Config.MIN_SELECTION_SIZE:
            self.hide()
            self.selection_made.emit(rect.translated(self.geometry().topLeft()))
        else:
            self.selection_rect = QRect()
            self.update()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Escape:
            self.hide()
            self.selection_rect = QRect()
            self.selecting = False
            self.selection_cancelled.emit()
        else:
            super().keyPressEvent(event)


class OcrRunner(QObject):
    """
    Runs OCR requests on one asyncio loop in a background thread.

    All requests share the loop and a single aiohttp session. Results are
    delivered through ``finished``, which Qt queues onto the GUI thread.
    """

    finished = pyqtSignal(object)  # OcrResult

    def __init__(self, dispatcher: OcrDispatcher, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.dispatcher = dispatcher
        self._session: Optional[aiohttp.ClientSession] = None
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="ocr-loop", daemon=True)
        self._thread.start()

    def _run_loop(self):
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    async def _run(self, request: OcrRequest) -> OcrResult:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return await self.dispatcher.run(request, session=self._session)

    def submit(self, request: OcrRequest) -> concurrent.futures.Future:
        future = asyncio.run_coroutine_threadsafe(self._run(request), self._loop)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: concurrent.futures.Future):
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            _LOGGER.error("OCR task crashed: %s", exc)
            self.finished.emit(OcrResult.fail(str(exc) or exc.__class__.__name__))
            return
        self.finished.emit(future.result())

    async def _close_session(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    def shutdown(self):
        if not self._thread.is_alive():
            return
        try:
            asyncio.run_coroutine_threadsafe(self._close_session(), self._loop).result(timeout=5)
        except concurrent.futures.TimeoutError:
            _LOGGER.warning("Timed out closing the HTTP session")
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            self._loop.close()


class FloatingWindow(QWidget):
    """Small always-on-top preview of the latest clipboard text"""

    copy_requested = pyqtSignal(str)

    def __init__(self):
        super().__init__()
        self.setWindowTitle("AI Paste")
        self.setWindowFlags(Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint | Qt.Tool)
        self.resize(Config.FLOATING_WIDTH, Config.FLOATING_HEIGHT)

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel("Clipboard"))

        self.preview = QTextEdit()
        self.preview.setReadOnly(True)
        layout.addWidget(self.preview)

        copy_btn = QPushButton("Copy as Rich Text")
        copy_btn.clicked.connect(lambda: self.copy_requested.emit(self.preview.toPlainText()))
        layout.addWidget(copy_btn)

    def show_clipboard(self, content: dict):
        self.preview.setPlainText(content.get("text", ""))

    def reveal(self):
        screen = QGuiApplication.primaryScreen()
        if screen is not None:
            area = screen.availableGeometry()
            self.move(
                area.right() - self.width() - Config.FLOATING_MARGIN,
                area.top() + (area.height() - self.height()) // 2,
            )
        self.show()
        self.raise_()

    def toggle(self):
        if self.isVisible():
            self.hide()
        else:
            self.reveal()

    def changeEvent(self, event):
        if event.type() == QEvent.ActivationChange and not self.isActiveWindow():
            self.hide()
        super().changeEvent(event)


class MainWindow(QMainWindow):
    """Shows OCR results and clipboard content; hides instead of closing"""

    capture_region_requested = pyqtSignal()
    capture_screen_requested = pyqtSignal()
    copy_requested = pyqtSignal(str)
    provider_selected = pyqtSignal(str)

    def __init__(self):
        super().__init__()
        self.setWindowTitle(Config.APP_NAME)
        self.resize(900, 670)
        self.quitting = False

        central = QWidget()
        layout = QVBoxLayout(central)

        toolbar = QHBoxLayout()
        self.provider_combo = QComboBox()
        self.provider_combo.currentIndexChanged.connect(self._on_provider_changed)
        toolbar.addWidget(QLabel("OCR:"))
        toolbar.addWidget(self.provider_combo, 1)
        self.math_check = QCheckBox("Math mode")
        toolbar.addWidget(self.math_check)
        self.on_top_check = QCheckBox("Always on top")
        self.on_top_check.toggled.connect(self.set_always_on_top)
        toolbar.addWidget(self.on_top_check)
        layout.addLayout(toolbar)

        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: gray;")
        layout.addWidget(self.status_label)

        self.text_edit = QTextEdit()
        self.text_edit.setFont(QFont("Consolas", 10))
        layout.addWidget(self.text_edit)

        buttons = QHBoxLayout()
        region_btn = QPushButton("Capture Region")
        region_btn.clicked.connect(self.capture_region_requested.emit)
        buttons.addWidget(region_btn)
        screen_btn = QPushButton("Capture Full Screen")
        screen_btn.clicked.connect(self.capture_screen_requested.emit)
        buttons.addWidget(screen_btn)
        buttons.addStretch()
        copy_btn = QPushButton("Copy as Rich Text")
        copy_btn.setDefault(True)
        copy_btn.clicked.connect(lambda: self.copy_requested.emit(self.text_edit.toPlainText()))
        buttons.addWidget(copy_btn)
        layout.addLayout(buttons)

        self.setCentralWidget(central)

    def set_providers(self, builtin_info: dict, providers: list, selected_id: str):
        self.provider_combo.blockSignals(True)
        self.provider_combo.clear()
        self.provider_combo.addItem(builtin_info["name"], builtin_info["id"])
        for provider in providers:
            self.provider_combo.addItem(provider.name, provider.id)
        index = self.provider_combo.findData(selected_id)
        self.provider_combo.setCurrentIndex(max(index, 0))
        self.provider_combo.blockSignals(False)

    def _on_provider_changed(self, index: int):
        provider_id = self.provider_combo.itemData(index)
        if provider_id:
            self.provider_selected.emit(provider_id)

    def set_always_on_top(self, enabled: bool):
        self.setWindowFlag(Qt.WindowStaysOnTopHint, enabled)
        if self.on_top_check.isChecked() != enabled:
            self.on_top_check.setChecked(enabled)
        self.show()

    def show_status(self, message: str):
        self.status_label.setText(message)

    def show_result(self, result: OcrResult):
        if result.success:
            self.text_edit.setPlainText(result.text or "")
            self.show_status("LaTeX detected" if result.latex else "Text recognized")
        else:
            self.show_status(f"OCR failed: {result.error}")

    def show_clipboard(self, content: dict):
        self.text_edit.setPlainText(content.get("text", ""))
        self.show_clipboard_status(content)

    def show_clipboard_status(self, content: dict):
        """Report the clipboard's formats without replacing the shown text"""
        formats = ", ".join(content.get("formats", [])) or "empty"
        self.show_status(f"Clipboard: {formats}")

    def bring_to_front(self):
        self.show()
        self.raise_()
        self.activateWindow()

    def closeEvent(self, event):
        if not self.quitting:
            event.ignore()
            self.hide()
            return
        super().closeEvent(event)


class SettingsDialog(QDialog):
    """Settings dialog: OCR providers and clipboard behaviour"""

    settings_changed = pyqtSignal(dict)

    def __init__(self, current_settings: dict, builtin_info: dict, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setMinimumWidth(460)
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)

        self.settings = dict(current_settings)
        self.settings["providers"] = [dict(p) for p in current_settings.get("providers") or []]
        self.builtin_info = builtin_info

        layout = QVBoxLayout(self)

        # Providers
        provider_group = QGroupBox("OCR Provider")
        provider_layout = QFormLayout(provider_group)

        self.provider_combo = QComboBox()
        provider_layout.addRow("Use:", self.provider_combo)

        remove_btn = QPushButton("Remove Selected")
        remove_btn.clicked.connect(self._on_remove_provider)
        provider_layout.addRow("", remove_btn)
        layout.addWidget(provider_group)

        add_group = QGroupBox("Add Custom Provider")
        add_layout = QFormLayout(add_group)
        self.name_edit = QLineEdit()
        add_layout.addRow("Name:", self.name_edit)
        self.type_combo = QComboBox()
        for provider_type in (ProviderType.OPENAI, ProviderType.CUSTOM,
                              ProviderType.MATHPIX, ProviderType.SILICONFLOW):
            self.type_combo.addItem(provider_type.value, provider_type)
        add_layout.addRow("Type:", self.type_combo)
        self.key_edit = QLineEdit()
        self.key_edit.setEchoMode(QLineEdit.Password)
        self.key_edit.setPlaceholderText("Mathpix: app_id:app_key")
        add_layout.addRow("API Key:", self.key_edit)
        self.url_edit = QLineEdit()
        self.url_edit.setPlaceholderText("https://api.openai.com/v1/chat/completions")
        add_layout.addRow("Base URL:", self.url_edit)
        self.model_edit = QLineEdit()
        add_layout.addRow("Model:", self.model_edit)
        add_btn = QPushButton("Add")
        add_btn.clicked.connect(self._on_add_provider)
        add_layout.addRow("", add_btn)
        layout.addWidget(add_group)

        self._refresh_providers(self.settings.get("selected_provider"))

        # Behaviour
        self.auto_copy_check = QCheckBox("Copy OCR result to clipboard as rich text")
        self.auto_copy_check.setChecked(self.settings.get("auto_copy", True))
        layout.addWidget(self.auto_copy_check)

        self.watch_check = QCheckBox("Watch clipboard for changes")
        self.watch_check.setChecked(self.settings.get("clipboard_watch", True))
        layout.addWidget(self.watch_check)

        self.reveal_check = QCheckBox("Show floating window when the clipboard changes")
        self.reveal_check.setChecked(self.settings.get("auto_reveal", False))
        layout.addWidget(self.reveal_check)

        self.notifications_check = QCheckBox("Show notifications")
        self.notifications_check.setChecked(self.settings.get("show_notifications", True))
        layout.addWidget(self.notifications_check)

        button_layout = QHBoxLayout()
        button_layout.addStretch()
        save_btn = QPushButton("Save")
        save_btn.clicked.connect(self._on_save)
        button_layout.addWidget(save_btn)
        cancel_btn = QPushButton("Cancel")
        cancel_btn.clicked.connect(self.reject)
        button_layout.addWidget(cancel_btn)
        layout.addLayout(button_layout)

    def _refresh_providers(self, selected_id: Optional[str]):
        self.provider_combo.clear()
        self.provider_combo.addItem(self.builtin_info["name"], self.builtin_info["id"])
        for entry in self.settings["providers"]:
            self.provider_combo.addItem(entry.get("name", entry.get("id")), entry.get("id"))
        index = self.provider_combo.findData(selected_id)
        self.provider_combo.setCurrentIndex(max(index, 0))

    def _on_add_provider(self):
        name = self.name_edit.text().strip()
        if not name:
            return
        provider = OcrProviderConfig(
            id=f"custom-{uuid.uuid4().hex[:8]}",
            name=name,
            type=self.type_combo.currentData(),
            api_key=self.key_edit.text().strip(),
            base_url=self.url_edit.text().strip() or None,
            model=self.model_edit.text().strip() or None,
        )
        self.settings["providers"].append(provider.to_dict())
        for edit in (self.name_edit, self.key_edit, self.url_edit, self.model_edit):
            edit.clear()
        self._refresh_providers(provider.id)

    def _on_remove_provider(self):
        provider_id = self.provider_combo.currentData()
        if provider_id == self.builtin_info["id"]:
            return
        self.settings["providers"] = [
            p for p in self.settings["providers"] if p.get("id") != provider_id
        ]
        self._refresh_providers(self.builtin_info["id"])

    def _on_save(self):
        self.settings["selected_provider"] = self.provider_combo.currentData()
        self.settings["auto_copy"] = self.auto_copy_check.isChecked()
        self.settings["clipboard_watch"] = self.watch_check.isChecked()
        self.settings["auto_reveal"] = self.reveal_check.isChecked()
        self.settings["show_notifications"] = self.notifications_check.isChecked()
        self.settings_changed.emit(self.settings)
        self.accept()


class AIPasteApp(QObject):
    """Main application controller"""

    def __init__(self, settings: Optional[AppSettings] = None,
                 dispatcher: Optional[OcrDispatcher] = None):
        super().__init__()
        self.settings = settings or AppSettings()
        self.dispatcher = dispatcher or OcrDispatcher(builtin_provider())
        self.last_result: Optional[OcrResult] = None

        self.ocr_runner = OcrRunner(self.dispatcher, self)
        self.ocr_runner.finished.connect(self._on_ocr_finished)

        self.overlay: Optional[SelectionOverlay] = None

        self.main_window = MainWindow()
        self.main_window.capture_region_requested.connect(self.start_capture)
        self.main_window.capture_screen_requested.connect(self.capture_screen)
        self.main_window.copy_requested.connect(self.copy_rich_text)
        self.main_window.provider_selected.connect(self._on_provider_selected)
        self.main_window.math_check.setChecked(self.settings.get("math_mode", False))
        self.main_window.math_check.toggled.connect(self._on_math_mode_toggled)
        self.main_window.on_top_check.setChecked(self.settings.get("always_on_top", False))
        self._refresh_providers()

        self.floating_window = FloatingWindow()
        self.floating_window.copy_requested.connect(self.copy_rich_text)

        self.clipboard_watcher = ClipboardWatcher(
            interval_ms=Config.CLIPBOARD_POLL_INTERVAL_MS, parent=self
        )
        self.clipboard_watcher.set_enabled(self.settings.get("clipboard_watch", True))
        self.clipboard_watcher.set_auto_reveal(self.settings.get("auto_reveal", False))
        self.clipboard_watcher.clipboard_changed.connect(self.floating_window.show_clipboard)
        self.clipboard_watcher.clipboard_changed.connect(self.main_window.show_clipboard_status)
        self.clipboard_watcher.reveal_requested.connect(self._on_reveal_requested)

        # Hotkey polling state
        self.hotkey_timer: Optional[QTimer] = None
        self.hotkey_actions = {
            Config.HOTKEY_CONVERT: self.convert_clipboard,
            Config.HOTKEY_CAPTURE: self.start_capture,
        }
        self.hotkey_pressed = {combo: False for combo in self.hotkey_actions}

        self._create_system_tray()
        self._setup_hotkeys()
        self.clipboard_watcher.start()

    # -- setup -------------------------------------------------------------

    def _create_system_tray(self):
        self.tray_icon = QSystemTrayIcon()
        icon_pixmap = QPixmap(64, 64)
        icon_pixmap.fill(Config.SELECTION_COLOR)
        self.tray_icon.setIcon(QIcon(icon_pixmap))
        self.tray_icon.setToolTip(Config.APP_NAME)

        tray_menu = QMenu()

        show_action = QAction("Show App", tray_menu)
        show_action.triggered.connect(self.main_window.bring_to_front)
        tray_menu.addAction(show_action)

        capture_action = QAction("Capture Region", tray_menu)
        capture_action.setToolTip("Select a region and run OCR (Ctrl+Shift+M)")
        capture_action.triggered.connect(self.start_capture)
        tray_menu.addAction(capture_action)

        screen_action = QAction("Capture Screen", tray_menu)
        screen_action.triggered.connect(self.capture_screen)
        tray_menu.addAction(screen_action)

        tray_menu.addSeparator()

        floating_action = QAction("Toggle Floating", tray_menu)
        floating_action.triggered.connect(self.floating_window.toggle)
        tray_menu.addAction(floating_action)

        self.watch_action = QAction("Watch Clipboard", tray_menu)
        self.watch_action.setCheckable(True)
        self.watch_action.setChecked(self.clipboard_watcher.is_enabled())
        self.watch_action.toggled.connect(self.set_clipboard_watch)
        tray_menu.addAction(self.watch_action)

        settings_action = QAction("Settings", tray_menu)
        settings_action.triggered.connect(self.show_settings)
        tray_menu.addAction(settings_action)

        tray_menu.addSeparator()

        exit_action = QAction("Quit", tray_menu)
        exit_action.triggered.connect(self.quit_app)
        tray_menu.addAction(exit_action)

        self.tray_icon.setContextMenu(tray_menu)
        self.tray_icon.activated.connect(self._on_tray_activated)
        self.tray_icon.show()

    def _on_tray_activated(self, reason):
        if reason in (QSystemTrayIcon.Trigger, QSystemTrayIcon.DoubleClick):
            self.main_window.bring_to_front()
        elif reason == QSystemTrayIcon.Context:
            menu = self.tray_icon.contextMenu()
            if menu:
                menu.popup(QCursor.pos())

    def _setup_hotkeys(self):
        """Poll global hotkeys from a Qt timer so the UI never blocks"""
        if not KEYBOARD_AVAILABLE:
            _LOGGER.warning("keyboard module not available; hotkeys disabled")
            self._notify(
                "Hotkeys Unavailable",
                "keyboard module not installed. Use the tray menu instead.",
                QSystemTrayIcon.Warning,
            )
            return

        self.hotkey_keys = {combo: combo.lower().split("+") for combo in self.hotkey_actions}
        self.hotkey_timer = QTimer(self)
        self.hotkey_timer.timeout.connect(self._check_hotkeys)
        self.hotkey_timer.start(Config.HOTKEY_POLL_INTERVAL_MS)
        _LOGGER.info("Hotkey polling started for %s", ", ".join(self.hotkey_actions))

    def _check_hotkeys(self):
        for combo, keys in self.hotkey_keys.items():
            try:
                all_pressed = all(keyboard.is_pressed(key) for key in keys)
            except Exception as e:
                # Typically missing privileges on Linux; polling cannot recover
                _LOGGER.warning("Hotkey polling disabled: %s", e)
                self._stop_hotkey_polling()
                return

            if all_pressed and not self.hotkey_pressed[combo]:
                self.hotkey_pressed[combo] = True
                _LOGGER.info("Hotkey triggered: %s", combo)
                self.hotkey_actions[combo]()
            elif not all_pressed and self.hotkey_pressed[combo]:
                self.hotkey_pressed[combo] = False

    def _stop_hotkey_polling(self):
        if self.hotkey_timer is not None:
            self.hotkey_timer.stop()
            self.hotkey_timer.deleteLater()
            self.hotkey_timer = None

    def _refresh_providers(self):
        self.main_window.set_providers(
            self.dispatcher.builtin_info(),
            self.settings.providers(),
            self.settings.get("selected_provider", Config.BUILTIN_ID),
        )

    def _notify(self, title: str, message: str, icon=QSystemTrayIcon.Information,
                timeout: int = 3000):
        # Warnings and errors are always shown
        if self.settings.get("show_notifications", True) or icon != QSystemTrayIcon.Information:
            self.tray_icon.showMessage(title, message, icon, timeout)

    # -- clipboard ---------------------------------------------------------

    def set_clipboard_watch(self, enabled: bool) -> bool:
        state = self.clipboard_watcher.set_enabled(enabled)
        self.settings.set("clipboard_watch", state)
        self.settings.save()
        if self.watch_action.isChecked() != state:
            self.watch_action.setChecked(state)
        return state

    def _on_reveal_requested(self):
        if not self.main_window.isActiveWindow():
            self.floating_window.reveal()

    def convert_clipboard(self):
        """Rewrite the clipboard text as rich text and show it"""
        content = ClipboardManager.get_content()
        text = content.get("text", "")
        if text:
            self.copy_rich_text(text)
        self.main_window.show_clipboard(content)
        self.main_window.bring_to_front()

    def copy_rich_text(self, text: str):
        if not text:
            return
        ClipboardManager.write(**rich_payload(text))
        self._notify("Text Copied", f"Copied {len(text)} characters as rich text.")

    # -- capture and OCR ---------------------------------------------------

    def start_capture(self):
        """Show the region picker"""
        if self.overlay is None:
            self.overlay = SelectionOverlay()
            self.overlay.selection_made.connect(self._on_selection_made)
            self.overlay.selection_cancelled.connect(self._on_selection_cancelled)
        self.overlay.start_selection()

    def _on_selection_made(self, rect: QRect):
        QTimer.singleShot(CAPTURE_DELAY_MS, lambda: self._run_capture(capture_region(rect)))

    def _on_selection_cancelled(self):
        self._notify("Capture Cancelled", "Screen capture was cancelled.", timeout=1500)

    def capture_screen(self):
        self._run_capture(capture_full_screen())

    def _run_capture(self, capture: CaptureResult):
        if not capture.success:
            self._notify("Capture Error", capture.error or "Capture failed",
                         QSystemTrayIcon.Warning)
            return
        self.request_ocr(capture.image_data)

    def request_ocr(self, image) -> concurrent.futures.Future:
        request = OcrRequest(
            image=image,
            math_mode=self.main_window.math_check.isChecked(),
            config=self.settings.selected_provider(),
        )
        self.main_window.show_status("Recognizing...")
        return self.ocr_runner.submit(request)

    def _on_ocr_finished(self, result: OcrResult):
        self.last_result = result
        self.main_window.show_result(result)

        if not result.success:
            self._notify("OCR Error", result.error or "OCR failed",
                         QSystemTrayIcon.Critical, 5000)
            return

        if self.settings.get("auto_copy", True):
            self.copy_rich_text(result.text or "")

    # -- settings ----------------------------------------------------------

    def _on_provider_selected(self, provider_id: str):
        self.settings.set("selected_provider", provider_id)
        self.settings.save()

    def _on_math_mode_toggled(self, enabled: bool):
        self.settings.set("math_mode", enabled)
        self.settings.save()

    def show_settings(self):
        dialog = SettingsDialog(self.settings.data, self.dispatcher.builtin_info())
        dialog.settings_changed.connect(self._on_settings_changed)
        dialog.exec_()

    def _on_settings_changed(self, new_settings: dict):
        self.settings.data.update(new_settings)
        self.settings.save()
        self.clipboard_watcher.set_auto_reveal(new_settings.get("auto_reveal", False))
        self.set_clipboard_watch(new_settings.get("clipboard_watch", True))
        self._refresh_providers()

    def quit_app(self):
        self.shutdown()
        QApplication.quit()

    def shutdown(self):
        """Stop background work, persist settings and close all windows"""
        _LOGGER.info("Shutting down %s", Config.APP_NAME)
        self.clipboard_watcher.stop()
        self._stop_hotkey_polling()
        self.ocr_runner.shutdown()
        self.settings.set("always_on_top", self.main_window.on_top_check.isChecked())
        self.settings.save()
        self.main_window.quitting = True
        self.main_window.close()
        self.floating_window.close()
        self.tray_icon.hide()


def main():
    """Main entry point"""
    print("=" * 60)
    print(f"{Config.APP_NAME} v{Config.VERSION}")
    print("=" * 60)

    QApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)
    QApplication.setAttribute(Qt.AA_UseHighDpiPixmaps, True)

    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)  # Keep running in tray
    app.setApplicationName(Config.APP_NAME)
    app.setApplicationVersion(Config.VERSION)

    main_app = AIPasteApp()
    main_app.main_window.bring_to_front()

    print("\nHow to use:")
    print(f"  {Config.HOTKEY_CAPTURE}  select a screen region and OCR it")
    print(f"  {Config.HOTKEY_CONVERT}  convert clipboard content to rich text")
    print("  Right-click the tray icon for more actions\n")

    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
