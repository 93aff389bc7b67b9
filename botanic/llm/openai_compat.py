"""
botanic.llm.openai_compat
~~~~~~~~~~~~~~~~~~~~~~~~~

OpenAI 兼容的 ``/chat/completions`` 客户端。

LiteLLM 代理和 OpenRouter 都暴露同一套接口，只是地址、超时和请求头不同，
因此共用 ``OpenAICompatibleClient``，子类只负责填默认参数。
"""
from __future__ import annotations

from typing import Any

import httpx

from botanic.core.logging import get_logger
from botanic.llm.base import ChatMessage, CompletionClient, CompletionError

logger = get_logger(__name__)


class OpenAICompatibleClient(CompletionClient):
    """基于 ``httpx.AsyncClient`` 的 OpenAI 兼容补全客户端。

    Attributes:
        base_url: API 根地址，例如 ``http://localhost:4000/v1``。
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化客户端。

        Args:
            base_url: API 根地址（不含 ``/chat/completions``）。
            api_key: 可选的 Bearer Token。
            timeout: 单次请求超时（秒）。
            headers: 额外请求头。
            transport: 可选的 httpx transport（用于测试注入 ``MockTransport``）。
        """
        self.base_url: str = base_url.rstrip("/")
        request_headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            request_headers["Authorization"] = f"Bearer {api_key}"
        if headers:
            request_headers.update(headers)

        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=request_headers,
            timeout=timeout,
            transport=transport,
        )

    async def get_chat_completion(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        if messages:
            logger.debug("发送补全请求 | model=%s | content=%r", model, messages[0]["content"][:80])

        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        try:
            response = await self._http.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            logger.error("补全请求失败 | base_url=%s | %s", self.base_url, e)
            raise CompletionError(f"error making request: {e}") from e

        if response.status_code != httpx.codes.OK:
            logger.error(
                "补全服务返回非 200 | status=%d | body=%s",
                response.status_code, response.text[:500],
            )
            raise CompletionError(
                f"API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            choices = data["choices"]
        except (ValueError, KeyError, TypeError) as e:
            raise CompletionError(f"error decoding response: {e}") from e

        if not choices:
            raise CompletionError("no choices in response")

        return choices[0]["message"]["content"] or ""

    async def aclose(self) -> None:
        await self._http.aclose()


class LiteLLMClient(OpenAICompatibleClient):
    """本地 LiteLLM 代理客户端（无鉴权，超时较长）。"""

    def __init__(
        self,
        proxy_url: str = "http://localhost:4000",
        *,
        timeout: float = 90.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        logger.info("LiteLLM 客户端已初始化 | proxy=%s", proxy_url)
        super().__init__(
            f"{proxy_url.rstrip('/')}/v1",
            timeout=timeout,
            transport=transport,
        )


class OpenRouterClient(OpenAICompatibleClient):
    """OpenRouter 客户端。"""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 30.0,
        referer: str = "https://botanic.chat",
        title: str = "Botanic Chat",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        logger.info("OpenRouter 客户端已初始化 | key=%s...", api_key[:5])
        super().__init__(
            base_url,
            api_key=api_key,
            timeout=timeout,
            headers={"HTTP-Referer": referer, "X-Title": title},
            transport=transport,
        )
