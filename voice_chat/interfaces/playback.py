"""
Abstract interface for speech playback (text-to-speech) providers.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional


StartCallback = Callable[[], None]
EndCallback = Callable[[], None]
ErrorCallback = Callable[[BaseException], None]


class PlaybackInterface(ABC):
    """Abstract base class for all playback providers."""

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the playback provider.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    def play(self,
             text: str,
             on_start: Optional[StartCallback] = None,
             on_end: Optional[EndCallback] = None,
             on_error: Optional[ErrorCallback] = None,
             persona_id: Optional[str] = None) -> bool:
        """
        Synthesize and play ``text``.

        At most one playback is audible: a call while already playing is
        dropped, not queued.

        Args:
            text: Text to speak
            on_start: Called once when audio starts
            on_end: Called when audio finishes or is stopped after starting
            on_error: Called with the exception if synthesis or playback fails
            persona_id: Persona hint used to pick a voice

        Returns:
            bool: True if the playback was accepted, False if dropped
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Halt any in-progress playback immediately. Safe to call when idle."""
        pass

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        """Check if a playback is in progress."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the playback provider."""
        pass
