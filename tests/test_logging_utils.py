"""
Unit tests for the package logger
"""

import logging

from colorlog import ColoredFormatter

from ai_paste.logging_utils import ROOT_LOGGER_NAME, get_logger


class TestGetLogger:
    def test_root_logger_is_configured_once(self):
        root = get_logger()
        assert root is get_logger(ROOT_LOGGER_NAME)
        assert root.propagate is False
        colored = [h for h in root.handlers if isinstance(h.formatter, ColoredFormatter)]
        assert len(colored) == 1

        before = list(root.handlers)
        get_logger()
        get_logger("ai_paste.app")
        assert root.handlers == before

    def test_module_names_become_children(self):
        assert get_logger("ai_paste.ocr").name == "ai_paste.ocr"
        assert get_logger("ocr") is get_logger("ai_paste.ocr")

    def test_children_share_root_handler(self):
        child = get_logger("ai_paste.clipboard")
        assert child.handlers == []
        assert child.parent is logging.getLogger(ROOT_LOGGER_NAME)
