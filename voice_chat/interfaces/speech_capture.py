"""
Abstract interface for continuous speech capture providers.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator
from ..models.data_models import CaptureEvent


class SpeechCaptureInterface(ABC):
    """Abstract base class for all speech capture providers."""

    @abstractmethod
    async def start(self) -> None:
        """
        Arm a continuous recognition session.

        Calling start() while already armed is a no-op.

        Raises:
            UnsupportedCapability: If the host offers no recognition capability
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Disarm the recognition session. Safe to call when already stopped."""
        pass

    @abstractmethod
    def events(self) -> AsyncIterator[CaptureEvent]:
        """
        Stream of normalized capture events.

        Yields:
            CaptureEvent: interim, final, error and ended events in arrival order
        """
        pass

    @property
    @abstractmethod
    def is_armed(self) -> bool:
        """
        Check if a recognition session is armed.

        Returns:
            bool: True if armed, False otherwise
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Release every resource held by the provider."""
        pass

    @property
    def capabilities(self) -> dict:
        """
        Get provider capabilities.

        Returns:
            dict: Dictionary of provider capabilities
        """
        return {
            'continuous': True,
            'interim_results': True,
            'languages': ['zh'],
        }
