"""
Continuous speech capture using the microphone and OpenAI Whisper.

ARCHITECTURE:
- sounddevice callback pushes PCM blocks onto an asyncio queue (thread-safe)
- A processing task tracks speech/silence by block energy
- While the user speaks, the growing utterance is transcribed every
  ``chunk_duration`` seconds and published as an interim result
- After ``silence_duration`` of silence the whole utterance is transcribed
  once more and published as a final result
- After ``idle_timeout`` without any speech the session ends on its own
"""

import asyncio
import io
import threading
import wave
from typing import Dict, Any, Optional

import numpy as np
from openai import AsyncOpenAI, OpenAIError

try:
    import sounddevice as sd
except OSError:
    # PortAudio library missing on this host
    sd = None

from ..base import SpeechCaptureBase
from ...models.data_models import TranscriptionResult
from ...utils.error_handling import UnsupportedCapability, RecognitionError
from ...utils.logging_config import get_logger


logger = get_logger("capture")


class WhisperSpeechCapture(SpeechCaptureBase):
    """
    Microphone capture transcribed by Whisper.

    Configuration options:
    - api_key: OpenAI API key
    - base_url: Optional OpenAI-compatible endpoint
    - model: Whisper model (default: "whisper-1")
    - language: Language code (default: "zh")
    - sample_rate: Audio sample rate (default: 16000)
    - chunk_duration: Seconds between interim transcriptions (default: 2.0)
    - silence_threshold: Normalized RMS energy treated as speech (default: 0.01)
    - silence_duration: Seconds of silence that close an utterance (default: 1.2)
    - idle_timeout: Seconds without speech before the session ends (default: 10.0)
    - input_device_index: Optional sounddevice input device
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self._component_name = "whisper capture"

        self.api_key = config.get('api_key')
        self.base_url = config.get('base_url')
        self.model = config.get('model', 'whisper-1')
        self.language = config.get('language', 'zh')
        self.sample_rate = config.get('sample_rate', 16000)
        self.chunk_duration = config.get('chunk_duration', 2.0)
        self.silence_threshold = config.get('silence_threshold', 0.01)
        self.silence_duration = config.get('silence_duration', 1.2)
        self.idle_timeout = config.get('idle_timeout', 10.0)
        self.input_device_index = config.get('input_device_index')

        self.frames_per_buffer = 3200  # 200ms at 16kHz
        self.channels = 1

        self._client: Optional[AsyncOpenAI] = None
        self._audio_stream = None
        self._audio_queue: Optional[asyncio.Queue] = None
        self._process_task: Optional[asyncio.Task] = None
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_flag = threading.Event()

    def _ensure_input_device(self) -> None:
        if sd is None:
            raise UnsupportedCapability("speech capture", "PortAudio is not available")
        try:
            sd.query_devices(self.input_device_index, kind='input')
        except (ValueError, sd.PortAudioError) as e:
            raise UnsupportedCapability("speech capture", f"no input device ({e})") from e

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        """Runs in sounddevice's audio thread."""
        if self._shutdown_flag.is_set():
            return
        if status:
            logger.debug(f"Audio callback status: {status}")

        audio_copy = indata.copy()
        loop = self._event_loop
        if loop is not None:
            try:
                loop.call_soon_threadsafe(self._queue_audio, audio_copy)
            except RuntimeError:
                # Loop closed during shutdown
                pass

    def _queue_audio(self, audio_data: np.ndarray) -> None:
        if self._audio_queue is None or self._shutdown_flag.is_set():
            return
        try:
            self._audio_queue.put_nowait(audio_data)
        except asyncio.QueueFull:
            try:
                self._audio_queue.get_nowait()
                self._audio_queue.put_nowait(audio_data)
            except (asyncio.QueueEmpty, asyncio.QueueFull):
                pass

    async def _open_stream(self) -> None:
        self._ensure_input_device()

        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

        self._event_loop = asyncio.get_running_loop()
        self._shutdown_flag.clear()
        self._audio_queue = asyncio.Queue(maxsize=50)

        self._audio_stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype='int16',
            blocksize=self.frames_per_buffer,
            device=self.input_device_index,
            callback=self._audio_callback
        )
        self._audio_stream.start()
        self._process_task = asyncio.create_task(self._process_audio())

    async def _close_stream(self) -> None:
        self._shutdown_flag.set()

        task = self._process_task
        self._process_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        stream = self._audio_stream
        self._audio_stream = None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except Exception as e:
                logger.warning(f"Audio stream close error: {e}")

        self._audio_queue = None
        self._event_loop = None

    def _detect_speech(self, audio_data: np.ndarray) -> bool:
        energy = np.sqrt(np.mean(audio_data.astype(np.float32) ** 2)) / 32768.0
        return energy > self.silence_threshold

    def _audio_to_wav_bytes(self, audio_bytes: bytes) -> bytes:
        wav_buffer = io.BytesIO()
        with wave.open(wav_buffer, 'wb') as wav_file:
            wav_file.setnchannels(self.channels)
            wav_file.setsampwidth(2)  # 16-bit
            wav_file.setframerate(self.sample_rate)
            wav_file.writeframes(audio_bytes)
        return wav_buffer.getvalue()

    async def _transcribe(self, audio_bytes: bytes) -> str:
        """Send buffered audio to Whisper. Raises RecognitionError on API failure."""
        if len(audio_bytes) < 1000:  # Skip tiny chunks
            return ""

        audio_file = io.BytesIO(self._audio_to_wav_bytes(audio_bytes))
        audio_file.name = "audio.wav"

        try:
            response = await self._client.audio.transcriptions.create(
                model=self.model,
                file=audio_file,
                language=self.language,
                response_format="text"
            )
        except OpenAIError as e:
            raise RecognitionError(f"Whisper API error: {e}") from e

        return response.strip() if response else ""

    async def _process_audio(self) -> None:
        loop = asyncio.get_running_loop()
        utterance = b""
        speaking = False
        last_speech = loop.time()
        last_interim = loop.time()

        try:
            while not self._shutdown_flag.is_set():
                try:
                    audio_data = await asyncio.wait_for(self._audio_queue.get(), timeout=0.3)
                except asyncio.TimeoutError:
                    audio_data = None

                now = loop.time()

                if audio_data is not None and self._detect_speech(audio_data):
                    if not speaking:
                        speaking = True
                        last_interim = now
                    last_speech = now

                if speaking and audio_data is not None:
                    utterance += audio_data.tobytes()

                if speaking and now - last_speech >= self.silence_duration:
                    text = await self._transcribe(utterance)
                    if text:
                        self.publish_results([TranscriptionResult(text=text, is_final=True)])
                    utterance = b""
                    speaking = False
                    last_speech = now
                elif speaking and now - last_interim >= self.chunk_duration:
                    last_interim = now
                    text = await self._transcribe(utterance)
                    if text:
                        self.publish_results([TranscriptionResult(text=text, is_final=False)])
                elif not speaking and now - last_speech >= self.idle_timeout:
                    logger.info(f"⏱️  No speech for {self.idle_timeout:.0f}s, ending capture")
                    await self.finish()
                    return

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"❌ Capture processing failed: {e}")
            await self.finish(e)

    async def cleanup(self) -> None:
        await self.stop()
        if self._client is not None:
            await self._client.close()
            self._client = None

    @property
    def capabilities(self) -> dict:
        return {
            'continuous': True,
            'interim_results': True,
            'languages': ['zh', 'en', 'ja', 'ko', 'fr', 'de', 'es'],
            'audio_formats': ['pcm16'],
            'sample_rates': [self.sample_rate],
        }
