"""
Pytest configuration and shared fixtures for voice chat tests.
"""

import asyncio
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from voice_chat.config_models import SessionConfig
from voice_chat.interfaces import PlaybackInterface, ReplyInterface
from voice_chat.models.data_models import TranscriptionResult
from voice_chat.providers.base import SpeechCaptureBase
from voice_chat.utils.error_handling import UnsupportedCapability


class FakeCapture(SpeechCaptureBase):
    """Capture adapter driven by the test instead of a microphone."""

    def __init__(self, calls: List[tuple]):
        super().__init__({})
        self.calls = calls
        self.unsupported = False
        self.start_error: Optional[Exception] = None

    async def start(self) -> None:
        self.calls.append(('capture.start',))
        await super().start()

    async def stop(self) -> None:
        self.calls.append(('capture.stop',))
        await super().stop()

    async def _open_stream(self) -> None:
        if self.unsupported:
            raise UnsupportedCapability("speech capture", "no microphone")
        if self.start_error is not None:
            raise self.start_error

    async def _close_stream(self) -> None:
        pass

    def say(self, text: str, final: bool = True) -> None:
        self.publish_results([TranscriptionResult(text=text, is_final=final)])


class FakePlayback(PlaybackInterface):
    """Playback adapter whose lifecycle is advanced by the test."""

    def __init__(self, calls: List[tuple]):
        self.calls = calls
        self.played: List[str] = []
        self.current = None
        self.started = False
        self.raise_unsupported = False

    async def initialize(self) -> bool:
        return True

    @property
    def is_playing(self) -> bool:
        return self.current is not None

    def play(self, text, on_start=None, on_end=None, on_error=None, persona_id=None) -> bool:
        self.calls.append(('play', text))
        if self.raise_unsupported:
            raise UnsupportedCapability("speech playback", "no audio output")
        if self.current is not None:
            return False
        self.played.append(text)
        self.current = (on_start, on_end, on_error)
        self.started = False
        return True

    def stop(self) -> None:
        self.calls.append(('playback.stop',))
        current, started = self.current, self.started
        self.current = None
        if current is not None and started and current[1]:
            current[1]()

    def begin(self) -> None:
        """Report audible start of the current playback."""
        self.started = True
        if self.current and self.current[0]:
            self.current[0]()

    def finish(self) -> None:
        current = self.current
        self.current = None
        if current and current[1]:
            current[1]()

    def fail(self, error: BaseException) -> None:
        current = self.current
        self.current = None
        if current and current[2]:
            current[2](error)

    async def cleanup(self) -> None:
        self.stop()


class FakeReply(ReplyInterface):
    """Reply service returning scripted answers, optionally held at a gate."""

    def __init__(self, calls: List[tuple]):
        self.calls = calls
        self.responses: List = []
        self.default = "好的！"
        self.gate: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def initialize(self) -> bool:
        return True

    async def request(self, utterance: str, persona_id: str) -> str:
        self.calls.append(('request', utterance, persona_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            response = self.responses.pop(0) if self.responses else self.default
            if isinstance(response, BaseException):
                raise response
            return response
        finally:
            self.in_flight -= 1

    async def cleanup(self) -> None:
        pass


async def settle(turns: int = 10) -> None:
    """Let pending tasks and callbacks run."""
    for _ in range(turns):
        await asyncio.sleep(0)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def capture(calls):
    return FakeCapture(calls)


@pytest.fixture
def playback(calls):
    return FakePlayback(calls)


@pytest.fixture
def reply(calls):
    return FakeReply(calls)


@pytest.fixture
def session_config():
    """Short timers so timing tests stay fast."""
    return SessionConfig(debounce_delay=0.05, grace_delay=0.02)


@pytest.fixture
def make_controller(capture, playback, reply, session_config):
    """Build a controller over the fakes; keyword arguments override defaults."""
    from voice_chat.controller import ConversationController

    def _make(**kwargs) -> ConversationController:
        kwargs.setdefault('session_config', session_config)
        return ConversationController(capture, playback, reply, **kwargs)

    return _make
