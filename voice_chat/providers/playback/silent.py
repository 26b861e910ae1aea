"""
Text-only playback: reports a normal lifecycle without producing audio.
"""

import asyncio
from typing import Callable, Dict, Any, Optional

from ..base import PlaybackBase


class SilentPlayback(PlaybackBase):
    """
    Playback for hosts without audio output.

    ``seconds_per_char`` simulates speaking time so interruption still works
    the same way it does with real audio (default: 0, end on the next loop turn).
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config or {})
        self._component_name = "silent playback"
        self.seconds_per_char = float(self.config.get('seconds_per_char', 0.0))

    async def _speak(self, text: str, persona_id: Optional[str], started: Callable[[], None]) -> None:
        started()
        await asyncio.sleep(len(text) * self.seconds_per_char)
