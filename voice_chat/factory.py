"""
Factory for creating provider instances based on configuration.
"""

from typing import Dict, Any

from .interfaces import SpeechCaptureInterface, PlaybackInterface, ReplyInterface
from .providers.capture import WhisperSpeechCapture
from .providers.playback import OpenAITTSPlayback, SilentPlayback
from .providers.reply import OpenAIChatReplyClient


class ProviderFactory:
    """Factory for creating provider instances."""

    CAPTURE_PROVIDERS = {
        'whisper': WhisperSpeechCapture,
    }

    PLAYBACK_PROVIDERS = {
        'openai_tts': OpenAITTSPlayback,
        'silent': SilentPlayback,
    }

    REPLY_PROVIDERS = {
        'openai_chat': OpenAIChatReplyClient,
    }

    @staticmethod
    def _create(registry: Dict[str, type], kind: str, provider_type: str, config: Dict[str, Any]):
        if provider_type not in registry:
            available = ', '.join(registry.keys())
            raise ValueError(f"Unknown {kind} provider: {provider_type}. Available: {available}")
        return registry[provider_type](config)

    @classmethod
    def create_capture_provider(cls, provider_type: str, config: Dict[str, Any]) -> SpeechCaptureInterface:
        return cls._create(cls.CAPTURE_PROVIDERS, 'capture', provider_type, config)

    @classmethod
    def create_playback_provider(cls, provider_type: str, config: Dict[str, Any]) -> PlaybackInterface:
        return cls._create(cls.PLAYBACK_PROVIDERS, 'playback', provider_type, config)

    @classmethod
    def create_reply_provider(cls, provider_type: str, config: Dict[str, Any]) -> ReplyInterface:
        return cls._create(cls.REPLY_PROVIDERS, 'reply', provider_type, config)

    @classmethod
    def create_all_providers(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create every provider named in a ``{component: {'provider', 'config'}}`` dict.

        Components missing from ``config`` are skipped.
        """
        creators = {
            'capture': cls.create_capture_provider,
            'playback': cls.create_playback_provider,
            'reply': cls.create_reply_provider,
        }
        providers = {}
        for component, create in creators.items():
            if component in config:
                section = config[component]
                providers[component] = create(section['provider'], section.get('config', {}))
        return providers

    @classmethod
    def list_providers(cls) -> Dict[str, list]:
        return {
            'capture': list(cls.CAPTURE_PROVIDERS.keys()),
            'playback': list(cls.PLAYBACK_PROVIDERS.keys()),
            'reply': list(cls.REPLY_PROVIDERS.keys()),
        }
