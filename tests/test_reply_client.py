"""
Tests for the OpenAI-compatible reply client.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from voice_chat.providers.reply import OpenAIChatReplyClient
from voice_chat.utils.error_handling import NetworkError, ServiceError


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def client():
    reply = OpenAIChatReplyClient({'api_key': 'test-key', 'history_turns': 1})
    reply._client = MagicMock()
    reply._client.chat.completions.create = AsyncMock(return_value=_completion(" 你好呀！ "))
    return reply


class TestOpenAIChatReplyClient:

    @pytest.mark.asyncio
    async def test_returns_stripped_reply(self, client):
        assert await client.request("你好", "fox") == "你好呀！"

        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs['model'] == 'deepseek-chat'
        assert kwargs['messages'][0]['role'] == 'system'
        assert '小狐狸' in kwargs['messages'][0]['content']
        assert kwargs['messages'][-1] == {'role': 'user', 'content': '你好'}

    @pytest.mark.asyncio
    async def test_history_is_bounded_per_persona(self, client):
        await client.request("一", "fox")
        await client.request("二", "fox")

        messages = client.build_messages("三", "fox")
        assert [m['content'] for m in messages[1:]] == ["二", "你好呀！", "三"]

        owl_messages = client.build_messages("你好", "owl")
        assert len(owl_messages) == 2
        assert '小猫头鹰' in owl_messages[0]['content']

    @pytest.mark.asyncio
    async def test_reset_history(self, client):
        await client.request("一", "fox")
        client.reset_history("fox")
        assert len(client.build_messages("二", "fox")) == 2

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_network_error(self, client):
        request = httpx.Request("POST", "https://api.deepseek.com/chat/completions")
        client._client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)
        with pytest.raises(NetworkError):
            await client.request("你好", "fox")

    @pytest.mark.asyncio
    async def test_timeout_maps_to_network_error(self, client):
        request = httpx.Request("POST", "https://api.deepseek.com/chat/completions")
        client._client.chat.completions.create.side_effect = openai.APITimeoutError(request=request)
        with pytest.raises(NetworkError):
            await client.request("你好", "fox")

    @pytest.mark.asyncio
    async def test_other_api_errors_map_to_service_error(self, client):
        client._client.chat.completions.create.side_effect = openai.OpenAIError("quota exceeded")
        with pytest.raises(ServiceError):
            await client.request("你好", "fox")

    @pytest.mark.asyncio
    async def test_no_choices_is_service_error(self, client):
        client._client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with pytest.raises(ServiceError):
            await client.request("你好", "fox")

    @pytest.mark.asyncio
    async def test_failed_turn_not_remembered(self, client):
        client._client.chat.completions.create.side_effect = openai.OpenAIError("boom")
        with pytest.raises(ServiceError):
            await client.request("你好", "fox")
        assert len(client.build_messages("再试", "fox")) == 2

    @pytest.mark.asyncio
    async def test_cleanup_closes_client(self, client):
        inner = client._client
        inner.close = AsyncMock()
        await client.cleanup()
        inner.close.assert_awaited_once()
        assert client._client is None
