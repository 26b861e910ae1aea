"""
Pet Voice Chat - push-to-talk voice conversation with a cartoon pet persona.

This package provides:
- Continuous speech capture (OpenAI Whisper over a sounddevice stream)
- AI replies from an OpenAI-compatible chat service (DeepSeek by default)
- Interruptible speech playback (OpenAI TTS)
- A conversation controller that debounces speech, serializes replies and
  keeps one status and one transcript consistent

Usage:
    from voice_chat import ConversationController, ProviderFactory, load_config

    config = load_config()
    providers = ProviderFactory.create_all_providers(config.to_legacy_dict())
    async with ConversationController(
        providers['capture'], providers['playback'], providers['reply'],
        session_config=config.session,
    ) as session:
        await session.start_listening()
"""

from .controller import ConversationController
from .factory import ProviderFactory
from .config import get_framework_config, load_config
from .personas import Persona, get_profile, list_profiles, resolve_persona
from .transcript_store import TranscriptStore
from . import interfaces
from . import models
from . import providers

__version__ = "1.0.0"

__all__ = [
    'ConversationController',
    'ProviderFactory',
    'get_framework_config',
    'load_config',
    'Persona',
    'get_profile',
    'list_profiles',
    'resolve_persona',
    'TranscriptStore',
    'interfaces',
    'models',
    'providers'
]
