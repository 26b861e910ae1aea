"""
Reply provider backed by an OpenAI-compatible chat completions endpoint.

Works with OpenAI directly or with DeepSeek (or any compatible service) by
pointing ``base_url`` at it.
"""

from collections import deque
from typing import Deque, Dict, Any, List, Optional

import openai
from openai import AsyncOpenAI

from ...interfaces.reply import ReplyInterface
from ...personas import get_profile
from ...utils.error_handling import NetworkError, ServiceError
from ...utils.logging_config import get_logger


logger = get_logger("reply")


DEFAULT_PERSONA_PROMPT = (
    "你是{name}，一个陪伴小朋友聊天的可爱小动物伙伴。"
    "请用简短、温暖、口语化的中文回答，每次回答不超过三句话，适合朗读出来。"
)


class OpenAIChatReplyClient(ReplyInterface):
    """
    Persona-aware chat completion client.

    Keeps a short per-persona history of recent turns so replies stay on
    topic; older turns are dropped once ``history_turns`` is exceeded.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary containing:
                - api_key: API key for the service
                - base_url: Optional endpoint (e.g. https://api.deepseek.com)
                - model: Chat model name (default: 'deepseek-chat')
                - temperature: Sampling temperature (default: 0.8)
                - max_tokens: Reply length limit (default: 300)
                - timeout: Request timeout in seconds (default: 30)
                - history_turns: Past user/assistant pairs sent with each request (default: 6)
                - persona_prompt: System prompt template with a ``{name}`` field
        """
        self.api_key = config.get('api_key')
        self.base_url = config.get('base_url')
        self.model = config.get('model', 'deepseek-chat')
        self.temperature = config.get('temperature', 0.8)
        self.max_tokens = config.get('max_tokens', 300)
        self.timeout = config.get('timeout', 30.0)
        self.history_turns = config.get('history_turns', 6)
        self.persona_prompt = config.get('persona_prompt') or DEFAULT_PERSONA_PROMPT

        self._client: Optional[AsyncOpenAI] = None
        self._histories: Dict[str, Deque[Dict[str, str]]] = {}

    async def initialize(self) -> bool:
        try:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0
            )
            return True
        except Exception as e:
            logger.error(f"Failed to initialize reply client: {e}")
            return False

    def _history_for(self, persona_id: str) -> Deque[Dict[str, str]]:
        if persona_id not in self._histories:
            self._histories[persona_id] = deque(maxlen=self.history_turns * 2)
        return self._histories[persona_id]

    def build_messages(self, utterance: str, persona_id: str) -> List[Dict[str, str]]:
        profile = get_profile(persona_id)
        messages = [{'role': 'system', 'content': self.persona_prompt.format(name=profile.display_name)}]
        messages.extend(self._history_for(profile.id))
        messages.append({'role': 'user', 'content': utterance})
        return messages

    async def request(self, utterance: str, persona_id: str) -> str:
        if self._client is None and not await self.initialize():
            raise ServiceError("Reply client could not be created")

        profile = get_profile(persona_id)
        messages = self.build_messages(utterance, persona_id)
        logger.debug(f"💬 Requesting reply from {self.model} as {profile.id} ({len(messages)} messages)")

        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            raise NetworkError(f"Reply service unreachable: {e}") from e
        except openai.OpenAIError as e:
            raise ServiceError(f"Reply service error: {e}") from e

        if not completion.choices:
            raise ServiceError("Reply service returned no choices")

        reply = (completion.choices[0].message.content or "").strip()

        history = self._history_for(profile.id)
        history.append({'role': 'user', 'content': utterance})
        history.append({'role': 'assistant', 'content': reply})

        return reply

    def reset_history(self, persona_id: Optional[str] = None) -> None:
        """Forget remembered turns for one persona, or for all of them."""
        if persona_id is None:
            self._histories.clear()
        else:
            self._histories.pop(get_profile(persona_id).id, None)

    async def cleanup(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
