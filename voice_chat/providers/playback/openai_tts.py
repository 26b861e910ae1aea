"""
OpenAI text-to-speech playback with streaming for low-latency output.

Audio is streamed from OpenAI straight into ffplay's stdin so playback begins
as soon as the first chunks arrive. When ffplay is missing the full clip is
buffered and played with macOS afplay.
"""

import asyncio
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Callable, Dict, Any, Optional

from openai import AsyncOpenAI

from ..base import PlaybackBase
from ...personas import get_profile
from ...utils.error_handling import PlaybackError, UnsupportedCapability
from ...utils.logging_config import get_logger


logger = get_logger("playback")


class OpenAITTSPlayback(PlaybackBase):
    """
    OpenAI TTS playback.

    The persona hint picks the voice; an unknown persona uses the default
    persona's voice.
    """

    AVAILABLE_VOICES = ['alloy', 'echo', 'fable', 'onyx', 'nova', 'shimmer']
    AVAILABLE_MODELS = ['tts-1', 'tts-1-hd', 'gpt-4o-mini-tts']
    AVAILABLE_FORMATS = ['mp3', 'opus', 'aac', 'flac', 'wav', 'pcm']

    STREAM_CHUNK_SIZE = 4096

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary containing:
                - api_key: OpenAI API key
                - model: TTS model (default: 'gpt-4o-mini-tts')
                - voice: Fallback voice when no persona hint is given (default: 'alloy')
                - speed: Speed modifier 0.25-4.0 (default: 1.0)
                - response_format: Output format (default: 'mp3')
        """
        super().__init__(config)
        self._component_name = "openai tts"

        self.api_key = config.get('api_key')
        self.model = config.get('model', 'gpt-4o-mini-tts')
        if self.model not in self.AVAILABLE_MODELS:
            raise ValueError(f"Invalid model: {self.model}. Available: {self.AVAILABLE_MODELS}")

        self.voice = config.get('voice', 'alloy')
        if self.voice not in self.AVAILABLE_VOICES:
            raise ValueError(f"Invalid voice: {self.voice}. Available: {self.AVAILABLE_VOICES}")

        self.speed = max(0.25, min(4.0, config.get('speed', 1.0)))

        self.response_format = config.get('response_format', 'mp3')
        if self.response_format not in self.AVAILABLE_FORMATS:
            raise ValueError(f"Invalid format: {self.response_format}. Available: {self.AVAILABLE_FORMATS}")

        self.stream_chunk_size = config.get('stream_chunk_size', self.STREAM_CHUNK_SIZE)

        self._client: Optional[AsyncOpenAI] = None
        self._playback_process = None

    async def initialize(self) -> bool:
        try:
            self._client = AsyncOpenAI(api_key=self.api_key)
            return True
        except Exception as e:
            logger.error(f"Failed to initialize OpenAI TTS: {e}")
            return False

    def voice_for(self, persona_id: Optional[str]) -> str:
        if persona_id is None:
            return self.voice
        voice = get_profile(persona_id).voice
        return voice if voice in self.AVAILABLE_VOICES else self.voice

    async def _speak(self, text: str, persona_id: Optional[str], started: Callable[[], None]) -> None:
        if self._client is None and not await self.initialize():
            raise PlaybackError("OpenAI TTS client could not be created")

        voice = self.voice_for(persona_id)

        if shutil.which("ffplay"):
            await self._stream_to_ffplay(text, voice, started)
        elif shutil.which("afplay"):
            await self._buffered_afplay(text, voice, started)
        else:
            raise UnsupportedCapability("audio playback", "neither ffplay nor afplay found")

    def _ffplay_format_args(self) -> list:
        if self.response_format == 'pcm':
            return ["-f", "s16le", "-ar", "24000", "-ac", "1"]
        return []

    async def _stream_to_ffplay(self, text: str, voice: str, started: Callable[[], None]) -> None:
        process = await asyncio.create_subprocess_exec(
            "ffplay",
            "-nodisp",
            "-autoexit",
            "-loglevel", "quiet",
            *self._ffplay_format_args(),
            "-i", "pipe:0",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL
        )
        self._playback_process = process
        start_time = time.time()
        first_chunk = True

        try:
            async with self._client.audio.speech.with_streaming_response.create(
                model=self.model,
                voice=voice,
                input=text,
                speed=self.speed,
                response_format=self.response_format
            ) as response:
                async for chunk in response.iter_bytes(self.stream_chunk_size):
                    if process.stdin is None:
                        break
                    try:
                        process.stdin.write(chunk)
                        await process.stdin.drain()
                    except (BrokenPipeError, ConnectionResetError):
                        break
                    if first_chunk:
                        first_chunk = False
                        logger.debug(f"🎵 TTS streaming started (latency: {(time.time() - start_time) * 1000:.0f}ms)")
                        started()

            if process.stdin is not None:
                process.stdin.close()
                await process.stdin.wait_closed()

            await asyncio.wait_for(process.wait(), timeout=120)
        finally:
            if process.returncode is None:
                try:
                    process.terminate()
                except ProcessLookupError:
                    pass
            self._playback_process = None

    async def _buffered_afplay(self, text: str, voice: str, started: Callable[[], None]) -> None:
        logger.info("⚠️  ffplay not found, using buffered playback (higher latency)")
        response = await self._client.audio.speech.create(
            model=self.model,
            voice=voice,
            input=text,
            speed=self.speed,
            response_format=self.response_format
        )

        with tempfile.NamedTemporaryFile(suffix=f".{self.response_format}", delete=False) as tmp:
            tmp.write(response.content)
            tmp_path = tmp.name

        try:
            process = subprocess.Popen(["afplay", tmp_path])
            self._playback_process = process
            started()
            while process.poll() is None:
                await asyncio.sleep(0.05)
        finally:
            if self._playback_process is not None and self._playback_process.poll() is None:
                self._playback_process.terminate()
            self._playback_process = None
            Path(tmp_path).unlink(missing_ok=True)

    def _halt(self) -> None:
        process = self._playback_process
        self._playback_process = None
        if process is None:
            return
        if isinstance(process, subprocess.Popen):
            if process.poll() is None:
                process.terminate()
        elif process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass

    async def cleanup(self) -> None:
        self.stop()
        if self._client is not None:
            await self._client.close()
            self._client = None
