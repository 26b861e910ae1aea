"""
Ordered transcript of a conversation session.
"""

from typing import Callable, Iterable, Iterator, List, Tuple

from .models.data_models import Message
from .utils.logging_config import get_logger


logger = get_logger("transcript")

ChangeListener = Callable[[Tuple[Message, ...]], None]


class TranscriptStore:
    """
    Append-only message log with atomic replacement.

    Every mutation notifies subscribers with the new snapshot so a UI can
    scroll to the latest message.
    """

    def __init__(self):
        self._messages: List[Message] = []
        self._listeners: List[ChangeListener] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)
        self._notify()

    def replace_all(self, messages: Iterable[Message]) -> None:
        """Replace the whole log in one step (used for external history sync)."""
        self._messages = list(messages)
        self._notify()

    def all(self) -> Tuple[Message, ...]:
        """Read-only view of the current ordered log."""
        return tuple(self._messages)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a content-changed listener.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.all()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.exception(f"Transcript listener failed: {e}")

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.all())
