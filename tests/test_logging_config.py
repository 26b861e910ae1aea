"""
Tests for package logging setup.
"""

import io
import logging

import pytest

from voice_chat import config
from voice_chat.utils.logging_config import (
    ROOT_LOGGER_NAME,
    StructuredFormatter,
    get_logger,
    parse_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_loggers():
    """setup_logging mutates global loggers; put them back afterwards."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    saved = (root.level, list(root.handlers))
    library_levels = {name: logging.getLogger(name).level for name in ('openai', 'httpx', 'httpcore')}
    yield
    root.setLevel(saved[0])
    root.handlers = saved[1]
    for name, level in library_levels.items():
        logging.getLogger(name).setLevel(level)


class TestSetupLogging:

    def test_level_and_handlers(self, tmp_path):
        log_file = tmp_path / "logs" / "voice_chat.log"
        logger = setup_logging(level="info", log_file=log_file)

        assert logger.level == logging.INFO
        assert len(logger.handlers) == 2

        get_logger("reply").info("你好")
        for handler in logger.handlers:
            handler.flush()
        content = log_file.read_text(encoding='utf-8')
        assert "[reply" in content
        assert "你好" in content

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            parse_level("LOUD")

    def test_http_libraries_quieted_unless_debug(self):
        setup_logging(level="INFO")
        assert logging.getLogger("httpx").level == logging.WARNING

        setup_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_configure_logging_uses_config_defaults(self, monkeypatch):
        monkeypatch.setattr(config, 'LOG_LEVEL', 'ERROR')
        monkeypatch.setattr(config, 'LOG_FILE', None)
        assert config.configure_logging().level == logging.ERROR
        assert config.configure_logging(level="DEBUG").level == logging.DEBUG


class TestStructuredFormatter:

    def _record(self, component=None, level=logging.WARNING):
        record = logging.LogRecord(ROOT_LOGGER_NAME, level, __file__, 1, "mic busy", None, None)
        if component:
            record.component = component
        return record

    def test_component_icon(self):
        formatter = StructuredFormatter(use_colors=False, use_emojis=True)
        assert "🎙️ capture" in formatter.format(self._record("capture"))

    def test_plain_output(self):
        formatter = StructuredFormatter(use_colors=False, use_emojis=False)
        line = formatter.format(self._record("capture"))
        assert "[WARNING" in line
        assert "[capture" in line
        assert line.endswith("mic busy")

    def test_no_colors_on_non_tty_stream(self):
        formatter = StructuredFormatter(use_colors=True, use_emojis=False, stream=io.StringIO())
        assert '\033[' not in formatter.format(self._record("reply"))

    def test_falls_back_to_logger_name(self):
        formatter = StructuredFormatter(use_colors=False, use_emojis=False)
        assert f"[{ROOT_LOGGER_NAME}" in formatter.format(self._record())
