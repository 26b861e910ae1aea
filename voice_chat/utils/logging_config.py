"""
Structured logging configuration for the voice chat package.

Logs go to stderr so they never interleave with the chat transcript the CLI
prints on stdout.
"""

import logging
import sys
from typing import Iterable, Optional, Union
from pathlib import Path
from datetime import datetime


ROOT_LOGGER_NAME = 'voice_chat'

# HTTP stack under the OpenAI client; chatty at INFO
NOISY_LIBRARIES = ('openai', 'httpx', 'httpcore')

LEVEL_NAMES = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class StructuredFormatter(logging.Formatter):
    """Formats records as ``[time] [level] [component] message``."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    EMOJIS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️ ',
        'WARNING': '⚠️ ',
        'ERROR': '❌',
        'CRITICAL': '💀'
    }

    COMPONENT_ICONS = {
        'controller': '🎛️',
        'state': '🔄',
        'capture': '🎙️',
        'playback': '🔊',
        'reply': '💬',
        'transcript': '📜',
        'providers': '🧩',
        'errors': '🚨',
    }

    def __init__(self, use_colors: bool = True, use_emojis: bool = True, stream=None):
        super().__init__()
        self.use_colors = use_colors
        self.use_emojis = use_emojis
        self.stream = stream

    def _colors_enabled(self) -> bool:
        if not self.use_colors or self.stream is None:
            return False
        isatty = getattr(self.stream, 'isatty', None)
        return bool(isatty and isatty())

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        level = record.levelname
        level_str = f"{self.EMOJIS.get(level, '')} {level}" if self.use_emojis else level

        if self._colors_enabled():
            level_str = f"{self.COLORS.get(level, '')}{level_str}{self.COLORS['RESET']}"

        component = getattr(record, 'component', None) or record.name
        if self.use_emojis and component in self.COMPONENT_ICONS:
            component = f"{self.COMPONENT_ICONS[component]} {component}"

        parts = [
            f"[{timestamp}]",
            f"[{level_str:15}]",
            f"[{component:12}]",
            record.getMessage()
        ]

        if record.exc_info:
            parts.append('\n' + self.formatException(record.exc_info))

        return ' '.join(parts)


class ComponentLogger:
    """
    Logger wrapper that tags every record with a component name.
    """

    def __init__(self, logger: logging.Logger, component: str):
        self.logger = logger
        self.component = component

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = kwargs.get('extra', {})
        extra['component'] = self.component
        kwargs['extra'] = extra
        self.logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        """Log an error with the current traceback."""
        kwargs['exc_info'] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def parse_level(level: Union[str, int]) -> int:
    """
    Turn ``LOG_LEVEL`` style input into a logging level.

    Raises:
        ValueError: For names other than DEBUG, INFO, WARNING, ERROR, CRITICAL
    """
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    if name not in LEVEL_NAMES:
        raise ValueError(f"Unknown log level '{level}'. Use one of: {', '.join(LEVEL_NAMES)}")
    return getattr(logging, name)


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    use_emojis: bool = True,
    quiet_libraries: Iterable[str] = NOISY_LIBRARIES
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file to mirror logs into (written without colors/emojis)
        use_colors: Use ANSI colors when stderr is a TTY
        use_emojis: Prefix levels and components with emojis
        quiet_libraries: Third-party loggers held at WARNING unless level is DEBUG

    Returns:
        The configured ``voice_chat`` logger
    """
    numeric_level = parse_level(level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(
        StructuredFormatter(use_colors=use_colors, use_emojis=use_emojis, stream=sys.stderr)
    )
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            StructuredFormatter(use_colors=False, use_emojis=False)
        )
        logger.addHandler(file_handler)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in quiet_libraries:
        logging.getLogger(name).setLevel(library_level)

    return logger


def get_logger(component: str) -> ComponentLogger:
    """
    Get a component-specific logger.

    Args:
        component: Component name (e.g., "controller", "capture", "playback")
    """
    return ComponentLogger(logging.getLogger(ROOT_LOGGER_NAME), component)
