"""
Tests for configuration models and the sectioned config module.
"""

import pytest
from pydantic import ValidationError

from voice_chat.config import get_framework_config
from voice_chat.config_models import (
    DEFAULT_EMPTY_REPLY_TEXT,
    DEFAULT_FALLBACK_TEXT,
    DEFAULT_TEXT_FALLBACK_TEXT,
    CaptureConfig,
    PlaybackConfig,
    ReplyConfig,
    SessionConfig,
    VoiceChatConfig,
)


def _config(**overrides):
    values = dict(
        reply=ReplyConfig(api_key='reply-key'),
        playback=PlaybackConfig(api_key='openai-key'),
        capture=CaptureConfig(api_key='openai-key'),
        session=SessionConfig(),
    )
    values.update(overrides)
    return VoiceChatConfig(**values)


class TestSessionConfig:

    def test_defaults(self):
        config = SessionConfig()
        assert config.debounce_delay == 1.0
        assert config.grace_delay == 0.5
        assert config.persona == 'fox'
        assert config.fallback_text == DEFAULT_FALLBACK_TEXT
        assert config.text_fallback_text == DEFAULT_TEXT_FALLBACK_TEXT
        assert config.empty_reply_text == DEFAULT_EMPTY_REPLY_TEXT

    @pytest.mark.parametrize("value,expected", [("OWL", "owl"), ("dragon", "fox"), ("default", "fox")])
    def test_persona_normalized(self, value, expected):
        assert SessionConfig(persona=value).persona == expected

    def test_blank_scripted_text_rejected(self):
        with pytest.raises(ValidationError):
            SessionConfig(fallback_text="  ")

    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            SessionConfig(debounce_delay=-1)


class TestProviderConfigs:

    def test_persona_prompt_needs_name(self):
        with pytest.raises(ValidationError):
            ReplyConfig(persona_prompt="你是一只小动物")
        assert ReplyConfig(persona_prompt="你是{name}").persona_prompt == "你是{name}"

    def test_invalid_audio_format(self):
        with pytest.raises(ValidationError):
            PlaybackConfig(response_format='ogg')


class TestVoiceChatConfig:

    def test_valid(self):
        config = _config()
        assert config.playback_provider == 'openai_tts'

    def test_missing_keys_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _config(reply=ReplyConfig(), playback=PlaybackConfig())
        message = str(exc_info.value)
        assert 'Reply API key' in message
        assert 'openai_tts' in message

    def test_silent_playback_needs_no_key(self):
        config = _config(playback=PlaybackConfig(), playback_provider='silent')
        assert config.playback_provider == 'silent'

    def test_legacy_dict(self):
        legacy = _config().to_legacy_dict()
        assert legacy['reply']['provider'] == 'openai_chat'
        assert legacy['capture']['config']['model'] == 'whisper-1'
        assert legacy['session']['persona'] == 'fox'

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('OPENAI_API_KEY', 'sk-openai')
        monkeypatch.delenv('DEEPSEEK_API_KEY', raising=False)
        monkeypatch.setenv('VOICE_CHAT_PERSONA', 'dolphin')
        monkeypatch.setenv('DEBOUNCE_DELAY', '0.8')

        config = VoiceChatConfig.from_env()
        assert config.reply.api_key == 'sk-openai'
        assert config.session.persona == 'dolphin'
        assert config.session.debounce_delay == 0.8

    def test_from_env_prefers_deepseek_key(self, monkeypatch):
        monkeypatch.setenv('OPENAI_API_KEY', 'sk-openai')
        monkeypatch.setenv('DEEPSEEK_API_KEY', 'sk-deepseek')
        assert VoiceChatConfig.from_env().reply.api_key == 'sk-deepseek'


class TestFrameworkConfig:

    def test_sections(self):
        config = get_framework_config()
        assert set(config) == {'capture', 'playback', 'reply', 'session'}
        for component in ('capture', 'playback', 'reply'):
            assert 'provider' in config[component]
            assert isinstance(config[component]['config'], dict)
