"""
Abstract interface for AI reply providers.
"""

from abc import ABC, abstractmethod


class ReplyInterface(ABC):
    """Abstract base class for all reply providers."""

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the reply provider.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def request(self, utterance: str, persona_id: str) -> str:
        """
        Get a reply to a user utterance, in character for a persona.

        Args:
            utterance: What the user said
            persona_id: Persona answering

        Returns:
            str: Reply text (may be empty)

        Raises:
            NetworkError: If the service could not be reached
            ServiceError: If the service answered with an error
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the reply provider."""
        pass
