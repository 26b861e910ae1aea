"""
Provider implementations for the voice chat capabilities.
"""

from .base import SpeechCaptureBase, PlaybackBase
from .capture import WhisperSpeechCapture
from .playback import OpenAITTSPlayback, SilentPlayback
from .reply import OpenAIChatReplyClient

__all__ = [
    'SpeechCaptureBase',
    'PlaybackBase',
    'WhisperSpeechCapture',
    'OpenAITTSPlayback',
    'SilentPlayback',
    'OpenAIChatReplyClient'
]
