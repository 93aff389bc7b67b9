"""
botanic.llm.base
~~~~~~~~~~~~~~~~

补全客户端抽象 —— Hub 只依赖 ``CompletionClient.get_chat_completion``。

取消语义：调用方取消正在 ``await`` 的任务时，底层 HTTP 请求随之中断，
``asyncio.CancelledError`` 原样向上传播，不会被包装成 ``CompletionError``。
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TypedDict


class ChatMessage(TypedDict):
    """发送给补全服务的单条对话消息。"""

    role: str
    content: str


class CompletionError(Exception):
    """补全服务调用失败（网络错误、非 2xx 响应、响应格式异常）。

    Attributes:
        status_code: 上游返回的 HTTP 状态码，非 HTTP 错误时为 ``None``。
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CompletionClient(ABC):
    """补全服务客户端基类。"""

    @abstractmethod
    async def get_chat_completion(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        """请求一次非流式补全，返回助手回复文本。

        Raises:
            CompletionError: 上游调用失败。
        """

    async def aclose(self) -> None:
        """释放底层连接池。默认无操作。"""
