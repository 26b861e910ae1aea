"""
Common data structures for the voice chat session.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List, Union


class MessageSender(str, Enum):
    """Who authored a transcript message."""
    USER = "user"
    ASSISTANT = "assistant"


class SessionStatus(Enum):
    """What the session is doing right now."""
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"


class CaptureEventKind(str, Enum):
    """Normalized speech capture event kinds."""
    INTERIM = "interim"
    FINAL = "final"
    ERROR = "error"
    ENDED = "ended"


_last_id_ms = 0


def next_message_id() -> int:
    """
    Time-derived message id in milliseconds.

    Ids are strictly increasing within the process even when several messages
    are created in the same millisecond.
    """
    global _last_id_ms
    now_ms = int(time.time() * 1000)
    _last_id_ms = max(now_ms, _last_id_ms + 1)
    return _last_id_ms


@dataclass(frozen=True)
class Message:
    """A committed transcript entry. Never mutated after creation."""
    text: str
    sender: MessageSender
    id: int = field(default_factory=next_message_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_user(self) -> bool:
        return self.sender == MessageSender.USER

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the host history format."""
        return {
            'role': self.sender.value,
            'content': self.text,
            'timestamp': self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return f"[{self.sender.value}] {self.text}"


@dataclass
class TranscriptionResult:
    """One raw recognition segment as produced by a speech engine."""
    text: str
    is_final: bool
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    confidence: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{'[FINAL]' if self.is_final else '[PARTIAL]'} {self.text}"


@dataclass(frozen=True)
class CaptureEvent:
    """Normalized event delivered by a speech capture adapter."""
    kind: CaptureEventKind
    text: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def interim(cls, text: str) -> 'CaptureEvent':
        return cls(CaptureEventKind.INTERIM, text)

    @classmethod
    def final(cls, text: str) -> 'CaptureEvent':
        return cls(CaptureEventKind.FINAL, text)

    @classmethod
    def failed(cls, error: Optional[BaseException] = None) -> 'CaptureEvent':
        return cls(CaptureEventKind.ERROR, error=error)

    @classmethod
    def ended(cls) -> 'CaptureEvent':
        return cls(CaptureEventKind.ENDED)


@dataclass(frozen=True)
class PersonaProfile:
    """Static persona metadata."""
    id: str
    display_name: str
    avatar: str
    accent_color: str
    greeting: str
    voice: str = "alloy"


TimestampLike = Union[datetime, str, int, float, None]


# Epoch values above this are milliseconds (JavaScript ``Date.now()``)
EPOCH_MS_THRESHOLD = 1e11


def _parse_timestamp(value: TimestampLike) -> Optional[datetime]:
    """
    Accept datetimes, ISO-8601 strings and epoch seconds or milliseconds.

    Returns None for values that cannot be read so the entry still maps to a
    message with a generated id.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        if isinstance(value, (int, float)):
            seconds = value / 1000 if abs(value) > EPOCH_MS_THRESHOLD else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (ValueError, OverflowError, OSError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class HistoryEntry:
    """One entry of a host-supplied conversation history."""
    role: str
    content: str
    timestamp: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryEntry':
        """Create from the host's dictionary format."""
        return cls(
            role=data.get('role', 'assistant'),
            content=data.get('content', ''),
            timestamp=_parse_timestamp(data.get('timestamp')),
        )

    def to_message(self, index: int, now: Optional[datetime] = None) -> Message:
        """
        Map to a transcript Message.

        The id is the entry's timestamp in milliseconds when one is present,
        otherwise the current time in milliseconds plus the entry's index.
        """
        now = now or datetime.now(timezone.utc)
        if self.timestamp is not None:
            msg_id = int(self.timestamp.timestamp() * 1000)
            stamp = self.timestamp
        else:
            msg_id = int(now.timestamp() * 1000) + index
            stamp = now

        sender = MessageSender.USER if self.role == 'user' else MessageSender.ASSISTANT
        return Message(text=self.content, sender=sender, id=msg_id, timestamp=stamp)


def map_history(entries: List[Union[HistoryEntry, Dict[str, Any]]]) -> List[Message]:
    """Map an external history 1:1 into transcript messages, preserving order."""
    now = datetime.now(timezone.utc)
    messages = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, HistoryEntry):
            entry = HistoryEntry.from_dict(entry)
        messages.append(entry.to_message(index, now=now))
    return messages
