"""
Abstract interfaces for the voice chat capabilities.
"""

from .speech_capture import SpeechCaptureInterface
from .playback import PlaybackInterface
from .reply import ReplyInterface

__all__ = [
    'SpeechCaptureInterface',
    'PlaybackInterface',
    'ReplyInterface'
]
