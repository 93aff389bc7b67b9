"""
botanic.llm.gemini
~~~~~~~~~~~~~~~~~~

Google Gemini 补全客户端 —— 把 OpenAI 风格的消息列表转换为 Gemini Content。
"""
from __future__ import annotations

from google import genai
from google.genai import types

from botanic.core.logging import get_logger
from botanic.llm.base import ChatMessage, CompletionClient, CompletionError

logger = get_logger(__name__)

# OpenAI 风格角色 → Gemini 角色
_ROLE_MAP: dict[str, str] = {"user": "user", "assistant": "model"}


class GeminiCompletionClient(CompletionClient):
    """Gemini 非流式补全。

    ``system`` 消息合并为 ``system_instruction``，其余消息按顺序转为 Content。
    """

    def __init__(self, api_key: str, client: genai.Client | None = None) -> None:
        """初始化客户端。

        Args:
            api_key: Google Gemini API Key。
            client: 可选的 ``genai.Client`` 实例（用于测试注入 mock）。
        """
        self._client: genai.Client = client or genai.Client(api_key=api_key)
        logger.info("Gemini 客户端已初始化")

    async def get_chat_completion(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        system_parts: list[str] = []
        contents: list[types.Content] = []
        for msg in messages:
            if msg["role"] == "system":
                system_parts.append(msg["content"])
                continue
            contents.append(
                types.Content(
                    role=_ROLE_MAP.get(msg["role"], "user"),
                    parts=[types.Part.from_text(text=msg["content"])],
                ),
            )

        config = types.GenerateContentConfig(
            temperature=temperature,
            system_instruction="\n".join(system_parts) if system_parts else None,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            logger.error("Gemini 调用异常: %s", e, exc_info=True)
            raise CompletionError(f"gemini error: {e}") from e

        if response.text is None:
            raise CompletionError("no text in gemini response")
        return response.text
