"""
Tests for speech capture normalization and the Whisper capture provider.
"""

import asyncio
from unittest.mock import patch

import numpy as np
import pytest

from conftest import FakeCapture
from voice_chat.models.data_models import CaptureEventKind, TranscriptionResult
from voice_chat.providers.capture import WhisperSpeechCapture
from voice_chat.utils.error_handling import RecognitionError, UnsupportedCapability


async def next_event(capture, timeout: float = 1.0):
    events = capture.events()
    return await asyncio.wait_for(events.__anext__(), timeout)


def _results(*segments):
    return [TranscriptionResult(text=text, is_final=final) for text, final in segments]


class TestSpeechCaptureBase:

    @pytest.mark.asyncio
    async def test_interim_segments_joined(self):
        capture = FakeCapture([])
        await capture.start()
        capture.publish_results(_results(("你", False), ("好", False)))

        event = await next_event(capture)
        assert event.kind == CaptureEventKind.INTERIM
        assert event.text == "你好"
        assert capture._queue.empty()

    @pytest.mark.asyncio
    async def test_final_segments_joined_after_interim(self):
        capture = FakeCapture([])
        await capture.start()
        capture.publish_results(_results(("今天", True), ("天气", True), ("怎", False)))

        interim = await next_event(capture)
        final = await next_event(capture)
        assert (interim.kind, interim.text) == (CaptureEventKind.INTERIM, "怎")
        assert (final.kind, final.text) == (CaptureEventKind.FINAL, "今天天气")

    @pytest.mark.asyncio
    async def test_empty_interim_still_emitted(self):
        capture = FakeCapture([])
        await capture.start()
        capture.publish_results(_results(("完成", True)))

        interim = await next_event(capture)
        assert (interim.kind, interim.text) == (CaptureEventKind.INTERIM, "")

    @pytest.mark.asyncio
    async def test_results_ignored_while_disarmed(self):
        capture = FakeCapture([])
        capture.publish_results(_results(("噪音", True)))
        assert capture._queue.empty()

    @pytest.mark.asyncio
    async def test_double_start_opens_once(self):
        calls = []
        capture = FakeCapture(calls)
        with patch.object(capture, '_open_stream', wraps=capture._open_stream) as opened:
            await capture.start()
            await capture.start()
        assert opened.call_count == 1
        assert capture.is_armed

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        capture = FakeCapture([])
        await capture.start()
        await capture.stop()
        await capture.stop()
        assert not capture.is_armed

    @pytest.mark.asyncio
    async def test_finish_with_error_emits_recognition_error(self):
        capture = FakeCapture([])
        await capture.start()
        await capture.finish(RuntimeError("network"))

        event = await next_event(capture)
        assert event.kind == CaptureEventKind.ERROR
        assert isinstance(event.error, RecognitionError)
        assert not capture.is_armed

    @pytest.mark.asyncio
    async def test_finish_without_error_emits_ended_once(self):
        capture = FakeCapture([])
        await capture.start()
        await capture.finish()
        await capture.finish()

        event = await next_event(capture)
        assert event.kind == CaptureEventKind.ENDED
        assert capture._queue.empty()

    @pytest.mark.asyncio
    async def test_start_failure_wrapped(self):
        capture = FakeCapture([])
        capture.start_error = OSError("device busy")
        with pytest.raises(RecognitionError):
            await capture.start()
        assert not capture.is_armed


class TestWhisperSpeechCapture:

    @pytest.mark.asyncio
    async def test_missing_portaudio_is_unsupported(self):
        capture = WhisperSpeechCapture({'api_key': 'test'})
        with patch('voice_chat.providers.capture.whisper_capture.sd', None):
            with pytest.raises(UnsupportedCapability) as exc_info:
                await capture.start()
        assert exc_info.value.capability == "speech capture"
        assert not capture.is_armed

    def test_speech_detection_by_energy(self):
        capture = WhisperSpeechCapture({'api_key': 'test', 'silence_threshold': 0.01})
        silence = np.zeros(1600, dtype=np.int16)
        speech = (np.sin(np.linspace(0, 100, 1600)) * 8000).astype(np.int16)
        assert not capture._detect_speech(silence)
        assert capture._detect_speech(speech)

    def test_config_defaults(self):
        capture = WhisperSpeechCapture({'api_key': 'test'})
        assert capture.model == 'whisper-1'
        assert capture.language == 'zh'
        assert capture.sample_rate == 16000
