"""
Configuration for the voice chat package.
Organized into discrete feature sections for clarity.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from .config_models import (
    VoiceChatConfig,
    ReplyConfig,
    PlaybackConfig,
    CaptureConfig,
    SessionConfig,
)
from .personas import get_profile
from .utils.logging_config import setup_logging


# =============================================================================
# SECTION 1: ENVIRONMENT & CREDENTIALS
# =============================================================================

project_dir = Path(__file__).parent.parent
env_path = project_dir / ".env"
if env_path.exists():
    load_dotenv(env_path)

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
REPLY_API_KEY = os.getenv("DEEPSEEK_API_KEY") or OPENAI_API_KEY


# =============================================================================
# SECTION 2: PROVIDER SELECTION
# =============================================================================

CAPTURE_PROVIDER = os.getenv("CAPTURE_PROVIDER", "whisper")
PLAYBACK_PROVIDER = os.getenv("PLAYBACK_PROVIDER", "openai_tts")   # Options: "openai_tts", "silent"
REPLY_PROVIDER = os.getenv("REPLY_PROVIDER", "openai_chat")


# =============================================================================
# SECTION 3: SPEECH CAPTURE (Whisper)
# =============================================================================

CAPTURE_CONFIG = {
    "api_key": OPENAI_API_KEY,
    "model": "whisper-1",
    "language": os.getenv("CAPTURE_LANGUAGE", "zh"),
    "sample_rate": 16000,
    "chunk_duration": 2.0,        # Seconds between interim transcriptions
    "silence_threshold": 0.01,    # Energy threshold for speech detection
    "silence_duration": 1.2,      # Silence that closes an utterance
    "idle_timeout": 10.0,         # Silence that ends the capture session
}


# =============================================================================
# SECTION 4: AI REPLY (DeepSeek / OpenAI-compatible chat)
# =============================================================================

REPLY_CONFIG = {
    "api_key": REPLY_API_KEY,
    "base_url": os.getenv("REPLY_BASE_URL", "https://api.deepseek.com"),
    "model": os.getenv("REPLY_MODEL", "deepseek-chat"),
    "temperature": 0.8,
    "max_tokens": 300,
    "timeout": 30.0,
    "history_turns": 6,
}


# =============================================================================
# SECTION 5: PLAYBACK (OpenAI TTS)
# =============================================================================

PLAYBACK_CONFIG = {
    "api_key": OPENAI_API_KEY,
    "model": "gpt-4o-mini-tts",
    "voice": os.getenv("TTS_VOICE", "alloy"),   # Used when no persona hint is given
    "speed": 1.0,
    "response_format": "mp3",
}


# =============================================================================
# SECTION 6: SESSION TIMING & SCRIPTED TEXTS
# =============================================================================

SESSION_CONFIG = {
    "debounce_delay": float(os.getenv("DEBOUNCE_DELAY", "1.0")),   # Wait after the last final segment
    "grace_delay": float(os.getenv("GRACE_DELAY", "0.5")),         # Interim text lingers after commit
    "persona": os.getenv("VOICE_CHAT_PERSONA", "fox"),
}


# =============================================================================
# SECTION 7: LOGGING
# =============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")
LOG_FILE = os.getenv("LOG_FILE")


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up package logging from this module's LOG_LEVEL / LOG_FILE.

    Explicit arguments win over the environment.
    """
    path = log_file or LOG_FILE
    return setup_logging(level=level or LOG_LEVEL, log_file=Path(path) if path else None)


def get_framework_config() -> Dict[str, Any]:
    """
    Build the unvalidated configuration dictionary.

    Returns:
        ``{component: {'provider': name, 'config': {...}}}`` plus a ``session`` section
    """
    return {
        'capture': {
            'provider': CAPTURE_PROVIDER,
            'config': dict(CAPTURE_CONFIG)
        },
        'playback': {
            'provider': PLAYBACK_PROVIDER,
            'config': dict(PLAYBACK_CONFIG)
        },
        'reply': {
            'provider': REPLY_PROVIDER,
            'config': dict(REPLY_CONFIG)
        },
        'session': dict(SESSION_CONFIG),
    }


def load_config(**provider_overrides: str) -> VoiceChatConfig:
    """
    Build and validate the configuration.

    Args:
        provider_overrides: e.g. ``playback_provider="silent"``

    Raises:
        pydantic.ValidationError: If a value is out of range or a key is missing
    """
    raw = get_framework_config()
    values = dict(
        capture=CaptureConfig(**raw['capture']['config']),
        playback=PlaybackConfig(**raw['playback']['config']),
        reply=ReplyConfig(**raw['reply']['config']),
        session=SessionConfig(**raw['session']),
        capture_provider=raw['capture']['provider'],
        playback_provider=raw['playback']['provider'],
        reply_provider=raw['reply']['provider'],
    )
    values.update(provider_overrides)
    return VoiceChatConfig(**values)


def _mask(value: str) -> str:
    return f"{'*' * 8}{value[-4:]}" if value else "(not set)"


def print_config_summary() -> None:
    """Print a human-readable summary of the active configuration."""
    config = get_framework_config()
    persona = get_profile(config['session']['persona'])

    print("📋 Voice chat configuration")
    print(f"   Capture:  {config['capture']['provider']} "
          f"(model={config['capture']['config']['model']}, language={config['capture']['config']['language']})")
    print(f"   Reply:    {config['reply']['provider']} "
          f"(model={config['reply']['config']['model']}, base_url={config['reply']['config']['base_url']})")
    print(f"   Playback: {config['playback']['provider']} "
          f"(model={config['playback']['config']['model']}, voice={config['playback']['config']['voice']})")
    print(f"   Persona:  {persona.avatar} {persona.display_name} ({persona.id})")
    print(f"   Debounce: {config['session']['debounce_delay']}s, grace: {config['session']['grace_delay']}s")
    print(f"   OpenAI key: {_mask(OPENAI_API_KEY)}")
    print(f"   Reply key:  {_mask(REPLY_API_KEY)}")
    print(f"   Logging:  {LOG_LEVEL}" + (f" (mirrored to {LOG_FILE})" if LOG_FILE else ""))
