"""
Data models for the voice chat session.
"""

from .data_models import (
    Message,
    MessageSender,
    SessionStatus,
    CaptureEvent,
    CaptureEventKind,
    TranscriptionResult,
    PersonaProfile,
    HistoryEntry,
    map_history,
    next_message_id
)

__all__ = [
    'Message',
    'MessageSender',
    'SessionStatus',
    'CaptureEvent',
    'CaptureEventKind',
    'TranscriptionResult',
    'PersonaProfile',
    'HistoryEntry',
    'map_history',
    'next_message_id'
]
