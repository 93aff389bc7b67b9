"""
botanic.llm.client
~~~~~~~~~~~~~~~~~~

补全客户端工厂 —— 根据 ``settings.LLM_PROVIDER`` 创建对应实现。

所有需要补全客户端的地方（目前只有 Hub）统一从此处获取。
"""
from __future__ import annotations

from botanic.core.config import Settings
from botanic.llm.base import CompletionClient
from botanic.llm.gemini import GeminiCompletionClient
from botanic.llm.openai_compat import LiteLLMClient, OpenRouterClient


def create_completion_client(settings: Settings) -> CompletionClient:
    """创建补全客户端实例。

    Args:
        settings: 全局配置。

    Returns:
        对应 ``LLM_PROVIDER`` 的 ``CompletionClient``。

    Raises:
        ValueError: 所选提供方缺少 API Key。
    """
    if settings.LLM_PROVIDER == "openrouter":
        if not settings.OPENROUTER_API_KEY:
            raise ValueError("LLM_PROVIDER=openrouter 但未配置 OPENROUTER_API_KEY")
        return OpenRouterClient(
            settings.OPENROUTER_API_KEY,
            base_url=settings.OPENROUTER_BASE_URL,
            timeout=settings.OPENROUTER_TIMEOUT,
            referer=settings.OPENROUTER_REFERER,
            title=settings.OPENROUTER_TITLE,
        )

    if settings.LLM_PROVIDER == "gemini":
        if not settings.GEMINI_API_KEY:
            raise ValueError("LLM_PROVIDER=gemini 但未配置 GEMINI_API_KEY")
        return GeminiCompletionClient(settings.GEMINI_API_KEY)

    return LiteLLMClient(settings.LITELLM_URL, timeout=settings.LITELLM_TIMEOUT)
