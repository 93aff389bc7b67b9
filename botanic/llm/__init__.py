"""
botanic.llm
~~~~~~~~~~~

外部补全服务客户端（LiteLLM 代理 / OpenRouter / Gemini）。
"""
from botanic.llm.base import ChatMessage, CompletionClient, CompletionError
from botanic.llm.client import create_completion_client

__all__ = [
    "ChatMessage",
    "CompletionClient",
    "CompletionError",
    "create_completion_client",
]
