"""
Base classes for provider implementations.
"""

import asyncio
from abc import abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, AsyncIterator, Callable, List, Optional

from ..interfaces.speech_capture import SpeechCaptureInterface
from ..interfaces.playback import PlaybackInterface, StartCallback, EndCallback, ErrorCallback
from ..models.data_models import CaptureEvent, TranscriptionResult
from ..utils.error_handling import UnsupportedCapability, RecognitionError, PlaybackError, VoiceChatError
from ..utils.logging_config import get_logger


logger = get_logger("providers")


class SpeechCaptureBase(SpeechCaptureInterface):
    """
    Base class for continuous speech capture providers.

    Provides:
    - Single armed session (start() while armed is a no-op)
    - Idempotent stop()
    - Event queue exposed through events()
    - Normalization of raw recognition results into interim/final events
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self._armed = False
        self._lock = asyncio.Lock()
        self._queue: "asyncio.Queue[CaptureEvent]" = asyncio.Queue()
        self._component_name = "capture"

    @property
    def is_armed(self) -> bool:
        return self._armed

    async def start(self) -> None:
        async with self._lock:
            if self._armed:
                logger.debug(f"{self._component_name} already armed, ignoring start()")
                return

            try:
                await self._open_stream()
            except UnsupportedCapability:
                await self._close_stream()
                raise
            except Exception as e:
                await self._close_stream()
                raise RecognitionError(f"Failed to start {self._component_name}: {e}") from e

            self._armed = True
            logger.info(f"🎙️  {self._component_name} armed")

    async def stop(self) -> None:
        async with self._lock:
            if not self._armed:
                return
            self._armed = False
            try:
                await self._close_stream()
            except Exception as e:
                logger.warning(f"Error while disarming {self._component_name}: {e}")
            logger.info(f"🛑 {self._component_name} disarmed")

    async def events(self) -> AsyncIterator[CaptureEvent]:
        while True:
            event = await self._queue.get()
            yield event

    def publish_results(self, results: List[TranscriptionResult]) -> None:
        """
        Normalize one batch of raw recognition results.

        Non-final segments are joined into one interim event, emitted even when
        empty so a stale interim is cleared. Final segments are joined into one
        final event, emitted only when non-empty.
        """
        if not self._armed:
            return

        interim_text = ''.join(r.text for r in results if not r.is_final)
        final_text = ''.join(r.text for r in results if r.is_final)

        self._queue.put_nowait(CaptureEvent.interim(interim_text))
        if final_text:
            self._queue.put_nowait(CaptureEvent.final(final_text))

    async def finish(self, error: Optional[BaseException] = None) -> None:
        """
        Disarm because the recognizer stopped on its own.

        Emits ``error`` if an exception is given, otherwise ``ended``.
        """
        async with self._lock:
            if not self._armed:
                return
            self._armed = False
            try:
                await self._close_stream()
            except Exception as e:
                logger.warning(f"Error while closing {self._component_name}: {e}")

        if error is not None:
            if not isinstance(error, VoiceChatError):
                error = RecognitionError(str(error))
            self._queue.put_nowait(CaptureEvent.failed(error))
        else:
            self._queue.put_nowait(CaptureEvent.ended())

    async def cleanup(self) -> None:
        await self.stop()

    @abstractmethod
    async def _open_stream(self) -> None:
        """Provider-specific start. Raise UnsupportedCapability when the host cannot capture."""
        pass

    @abstractmethod
    async def _close_stream(self) -> None:
        """
        Provider-specific stop.

        This MUST be safe to call multiple times and after a failed open.
        """
        pass


@dataclass
class _PlaybackRun:
    """Bookkeeping for one accepted play() call."""
    text: str
    persona_id: Optional[str]
    on_start: Optional[StartCallback]
    on_end: Optional[EndCallback]
    on_error: Optional[ErrorCallback]
    task: Optional[asyncio.Task] = None
    started: bool = False


def _invoke(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as e:
        logger.exception(f"Playback callback failed: {e}")


class PlaybackBase(PlaybackInterface):
    """
    Base class for playback providers.

    Provides:
    - At most one active playback; play() while playing is dropped
    - stop() that halts immediately and reports on_end for a started playback
    - Lifecycle callbacks (each started playback ends exactly once)
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self._current: Optional[_PlaybackRun] = None
        self._component_name = "playback"

    async def initialize(self) -> bool:
        return True

    @property
    def is_playing(self) -> bool:
        return self._current is not None

    def play(self,
             text: str,
             on_start: Optional[StartCallback] = None,
             on_end: Optional[EndCallback] = None,
             on_error: Optional[ErrorCallback] = None,
             persona_id: Optional[str] = None) -> bool:
        if self._current is not None:
            logger.info(f"🔇 {self._component_name} busy, dropping playback request")
            return False

        run = _PlaybackRun(text, persona_id, on_start, on_end, on_error)
        self._current = run
        run.task = asyncio.get_running_loop().create_task(self._run(run))
        return True

    def stop(self) -> None:
        run = self._current
        if run is None:
            return

        self._current = None
        try:
            self._halt()
        except Exception as e:
            logger.warning(f"Error halting {self._component_name}: {e}")
        if run.task is not None and not run.task.done():
            run.task.cancel()

        logger.info(f"🛑 Stopped {self._component_name}")
        if run.started:
            _invoke(run.on_end)

    async def cleanup(self) -> None:
        self.stop()

    async def _run(self, run: _PlaybackRun) -> None:
        def started() -> None:
            if self._current is run and not run.started:
                run.started = True
                _invoke(run.on_start)

        try:
            await self._speak(run.text, run.persona_id, started)
        except asyncio.CancelledError:
            # stop() already reported the end of this run
            return
        except Exception as e:
            if self._current is not run:
                return
            self._current = None
            if not isinstance(e, VoiceChatError):
                e = PlaybackError(f"{self._component_name} failed: {e}")
            logger.warning(f"❌ {self._component_name} error: {e}")
            _invoke(run.on_error, e)
            return

        if self._current is run:
            self._current = None
            _invoke(run.on_end)

    @abstractmethod
    async def _speak(self, text: str, persona_id: Optional[str], started: Callable[[], None]) -> None:
        """
        Synthesize and play ``text`` until it finishes.

        Call ``started()`` as soon as audio becomes audible.
        """
        pass

    def _halt(self) -> None:
        """Provider-specific immediate stop (e.g. terminate the player process)."""
