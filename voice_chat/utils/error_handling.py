"""
Error taxonomy and structured, non-fatal error reporting.

Nothing in a voice chat session is fatal to the process: every failure is
recorded as a ComponentError, logged, forwarded to the host as a notice, and
the session falls back to IDLE with its transcript intact.
"""

import asyncio
import inspect
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Callable, Dict, Any, List
from datetime import datetime

from .logging_config import get_logger


logger = get_logger("errors")


class VoiceChatError(Exception):
    """Base class for all voice chat errors."""


class UnsupportedCapability(VoiceChatError):
    """The host platform lacks a required capability (microphone, recognizer, audio output)."""

    def __init__(self, capability: str, reason: str = ""):
        self.capability = capability
        self.reason = reason
        message = f"{capability} is not supported on this host"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RecognitionError(VoiceChatError):
    """Speech recognition failed mid-session."""


class ReplyServiceError(VoiceChatError):
    """The AI reply service could not produce a reply."""


class NetworkError(ReplyServiceError):
    """The reply service could not be reached."""


class ServiceError(ReplyServiceError):
    """The reply service answered with an error."""


class PlaybackError(VoiceChatError):
    """Speech synthesis or audio playback failed."""


class ErrorSeverity(Enum):
    """Error severity levels."""
    WARNING = "warning"          # Log and continue
    RECOVERABLE = "recoverable"  # Session resets to a safe state
    FATAL = "fatal"              # Component unusable for the rest of the session


@dataclass
class ComponentError:
    """Structured error information."""
    component: str
    severity: ErrorSeverity
    message: str
    exception: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    traceback_str: Optional[str] = None

    def __post_init__(self):
        if self.exception is not None and not self.traceback_str and self.exception.__traceback__:
            self.traceback_str = ''.join(
                traceback.format_exception(
                    type(self.exception),
                    self.exception,
                    self.exception.__traceback__
                )
            )

    def __str__(self) -> str:
        if self.exception is not None:
            return f"{self.component}: {self.message} ({self.exception})"
        return f"{self.component}: {self.message}"


class ErrorHandler:
    """
    Records component errors and forwards them to registered listeners.

    Features:
    - Severity-based logging
    - Bounded error history
    - Per-component and per-severity summary
    """

    def __init__(self, max_history: int = 100):
        self._error_log: List[ComponentError] = []
        self._listeners: List[Callable[[ComponentError], None]] = []
        self._max_history = max_history

    def add_listener(self, listener: Callable[[ComponentError], None]) -> None:
        """Register a callback that receives every handled error."""
        self._listeners.append(listener)

    def handle_error(self, error: ComponentError) -> bool:
        """
        Record and report an error.

        Returns:
            True unless the error is FATAL
        """
        self._error_log.append(error)
        if len(self._error_log) > self._max_history:
            self._error_log.pop(0)

        if error.severity == ErrorSeverity.WARNING:
            logger.warning(f"{error.message}" + (f" ({error.exception})" if error.exception else ""))
        elif error.severity == ErrorSeverity.RECOVERABLE:
            logger.warning(f"🔧 {error.component}: {error.message} (resetting to idle)")
            if error.exception:
                logger.debug(f"   Exception: {error.exception!r}")
        else:
            logger.error(f"💀 {error.component}: {error.message}")
            if error.traceback_str:
                logger.debug(error.traceback_str)

        for listener in list(self._listeners):
            try:
                listener(error)
            except Exception as e:
                logger.exception(f"Error listener failed: {e}")

        return error.severity != ErrorSeverity.FATAL

    def get_error_history(self, component: Optional[str] = None) -> List[ComponentError]:
        """Get error history, optionally filtered by component."""
        if component:
            return [e for e in self._error_log if e.component == component]
        return self._error_log.copy()

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors."""
        summary = {
            'total_errors': len(self._error_log),
            'by_severity': {},
            'by_component': {}
        }

        for error in self._error_log:
            severity = error.severity.value
            summary['by_severity'][severity] = summary['by_severity'].get(severity, 0) + 1
            summary['by_component'][error.component] = summary['by_component'].get(error.component, 0) + 1

        return summary


async def safe_cleanup(*cleanup_funcs: Callable) -> List[tuple]:
    """
    Run every cleanup function even if some fail.

    Accepts plain callables and coroutine functions.

    Returns:
        List of ``(function name, exception)`` for the steps that failed
    """
    errors = []

    for func in cleanup_funcs:
        try:
            result = func()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            name = getattr(func, '__name__', repr(func))
            errors.append((name, e))
            logger.warning(f"Cleanup error in {name}: {e}")

    if errors:
        logger.warning(f"{len(errors)} cleanup errors occurred")

    return errors
