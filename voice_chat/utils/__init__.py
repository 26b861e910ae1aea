# Utils package

from .logging_config import setup_logging, get_logger, ComponentLogger, StructuredFormatter
from .error_handling import (
    VoiceChatError,
    UnsupportedCapability,
    RecognitionError,
    ReplyServiceError,
    NetworkError,
    ServiceError,
    PlaybackError,
    ErrorSeverity,
    ComponentError,
    ErrorHandler,
    safe_cleanup,
)
from .state_machine import SessionStateMachine, StateTransition, InvalidTransition

__all__ = [
    "setup_logging",
    "get_logger",
    "ComponentLogger",
    "StructuredFormatter",
    "VoiceChatError",
    "UnsupportedCapability",
    "RecognitionError",
    "ReplyServiceError",
    "NetworkError",
    "ServiceError",
    "PlaybackError",
    "ErrorSeverity",
    "ComponentError",
    "ErrorHandler",
    "safe_cleanup",
    "SessionStateMachine",
    "StateTransition",
    "InvalidTransition",
]
