from .openai_chat import OpenAIChatReplyClient

__all__ = ['OpenAIChatReplyClient']
