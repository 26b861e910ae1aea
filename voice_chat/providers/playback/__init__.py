from .openai_tts import OpenAITTSPlayback
from .silent import SilentPlayback

__all__ = ['OpenAITTSPlayback', 'SilentPlayback']
