"""
Pydantic configuration models with validation.
"""

import os
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .personas import Persona, resolve_persona


DEFAULT_FALLBACK_TEXT = "哎呀，我现在有点累了，稍后再聊好吗？"
DEFAULT_TEXT_FALLBACK_TEXT = "抱歉，我遇到了一点问题，请稍后再试。"
DEFAULT_EMPTY_REPLY_TEXT = "哇，这个问题很有趣呢！让我想想怎么回答你..."


class ReplyConfig(BaseModel):
    """AI reply service configuration."""
    api_key: str = Field("", description="API key for the chat service")
    base_url: Optional[str] = Field("https://api.deepseek.com", description="OpenAI-compatible endpoint")
    model: str = Field("deepseek-chat", description="Chat model name")
    temperature: float = Field(0.8, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(300, ge=16, le=4000, description="Reply length limit")
    timeout: float = Field(30.0, gt=0.0, le=300.0, description="Request timeout in seconds")
    history_turns: int = Field(6, ge=0, le=50, description="Past turns sent with each request")
    persona_prompt: str = Field("", description="System prompt template with a {name} field")

    @field_validator('persona_prompt')
    @classmethod
    def validate_persona_prompt(cls, v):
        if v and '{name}' not in v:
            raise ValueError('persona_prompt must contain a {name} placeholder')
        return v


class PlaybackConfig(BaseModel):
    """Speech playback configuration."""
    api_key: str = Field("", description="OpenAI API key")
    model: str = Field("gpt-4o-mini-tts", description="TTS model")
    voice: str = Field("alloy", description="Voice used without a persona hint")
    speed: float = Field(1.0, ge=0.25, le=4.0, description="Speech speed")
    response_format: str = Field("mp3", description="Audio format streamed from the API")

    @field_validator('response_format')
    @classmethod
    def validate_format(cls, v):
        valid_formats = ['mp3', 'opus', 'aac', 'flac', 'wav', 'pcm']
        if v not in valid_formats:
            raise ValueError(f'Invalid format. Must be one of: {valid_formats}')
        return v


class CaptureConfig(BaseModel):
    """Speech capture configuration."""
    api_key: str = Field("", description="OpenAI API key (Whisper)")
    base_url: Optional[str] = Field(None, description="Optional OpenAI-compatible endpoint")
    model: str = Field("whisper-1", description="Transcription model")
    language: str = Field("zh", description="Recognition language code")
    sample_rate: int = Field(16000, ge=8000, le=48000, description="Audio sample rate")
    chunk_duration: float = Field(2.0, gt=0.0, description="Seconds between interim transcriptions")
    silence_threshold: float = Field(0.01, ge=0.0, le=1.0, description="Speech energy threshold")
    silence_duration: float = Field(1.2, gt=0.0, description="Silence that closes an utterance")
    idle_timeout: float = Field(10.0, gt=0.0, description="Silence that ends the capture session")
    input_device_index: Optional[int] = Field(None, description="Audio input device index")


class SessionConfig(BaseModel):
    """Conversation controller timing and scripted texts."""
    debounce_delay: float = Field(1.0, ge=0.0, le=10.0, description="Wait after the last final segment")
    grace_delay: float = Field(0.5, ge=0.0, le=10.0, description="Interim text lingers this long after commit")
    persona: str = Field(Persona.FOX.value, description="Default persona id")
    fallback_text: str = Field(DEFAULT_FALLBACK_TEXT, description="Spoken apology when a voice turn fails")
    text_fallback_text: str = Field(DEFAULT_TEXT_FALLBACK_TEXT, description="Apology when a typed turn fails")
    empty_reply_text: str = Field(DEFAULT_EMPTY_REPLY_TEXT, description="Used when the reply is blank")

    @field_validator('persona')
    @classmethod
    def normalize_persona(cls, v):
        persona = resolve_persona(v)
        return Persona.FOX.value if persona == Persona.DEFAULT else persona.value

    @field_validator('fallback_text', 'text_fallback_text', 'empty_reply_text')
    @classmethod
    def validate_scripted_text(cls, v):
        if not v.strip():
            raise ValueError('scripted texts must not be blank')
        return v


class VoiceChatConfig(BaseModel):
    """Complete voice chat configuration."""
    reply: ReplyConfig
    playback: PlaybackConfig
    capture: CaptureConfig
    session: SessionConfig
    capture_provider: str = Field("whisper", description="Capture provider name")
    playback_provider: str = Field("openai_tts", description="Playback provider name")
    reply_provider: str = Field("openai_chat", description="Reply provider name")

    @model_validator(mode='after')
    def validate_api_keys(self):
        """Network-backed providers need keys; the silent playback does not."""
        errors = []

        if not self.reply.api_key:
            errors.append("Reply API key required (DEEPSEEK_API_KEY or OPENAI_API_KEY)")

        if self.playback_provider == 'openai_tts' and not self.playback.api_key:
            errors.append("OPENAI_API_KEY required for openai_tts playback")

        if self.capture_provider == 'whisper' and not self.capture.api_key:
            errors.append("OPENAI_API_KEY required for whisper capture")

        if errors:
            raise ValueError('; '.join(errors))

        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> 'VoiceChatConfig':
        """Load configuration from environment variables."""
        openai_key = os.getenv('OPENAI_API_KEY', '')
        reply_key = os.getenv('DEEPSEEK_API_KEY') or openai_key

        values = dict(
            reply=ReplyConfig(
                api_key=reply_key,
                base_url=os.getenv('REPLY_BASE_URL', 'https://api.deepseek.com'),
                model=os.getenv('REPLY_MODEL', 'deepseek-chat')
            ),
            playback=PlaybackConfig(
                api_key=openai_key,
                voice=os.getenv('TTS_VOICE', 'alloy')
            ),
            capture=CaptureConfig(
                api_key=openai_key,
                language=os.getenv('CAPTURE_LANGUAGE', 'zh')
            ),
            session=SessionConfig(
                persona=os.getenv('VOICE_CHAT_PERSONA', Persona.FOX.value),
                debounce_delay=float(os.getenv('DEBOUNCE_DELAY', '1.0')),
                grace_delay=float(os.getenv('GRACE_DELAY', '0.5'))
            ),
        )
        values.update(overrides)
        return cls(**values)

    def to_legacy_dict(self) -> Dict[str, Any]:
        """Convert to the ``{component: {'provider', 'config'}}`` dictionary format."""
        return {
            'capture': {
                'provider': self.capture_provider,
                'config': self.capture.model_dump()
            },
            'playback': {
                'provider': self.playback_provider,
                'config': self.playback.model_dump()
            },
            'reply': {
                'provider': self.reply_provider,
                'config': self.reply.model_dump()
            },
            'session': self.session.model_dump()
        }
