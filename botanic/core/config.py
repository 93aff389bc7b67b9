"""
botanic.core.config
~~~~~~~~~~~~~~~~~~~

集中式配置管理，基于 pydantic-settings 自动从 ``.env`` 文件加载。

支持多环境配置（dev / test / prod），加载顺序为:
  1. 环境变量（最高优先级）
  2. ``.env.{ENVIRONMENT}`` 环境专属文件
  3. ``.env`` 基础文件
  4. 字段默认值（最低优先级）
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 读取当前环境标识（在 Settings 类定义之前，用于决定加载哪个 .env 文件）
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    """全局配置对象，字段值按如下优先级加载：环境变量 > .env.{env} > .env > 默认值。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="Botanic Chat Backend", description="项目名称")
    VERSION: str = Field(default="0.1.0", description="版本号")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="运行环境：dev / test / prod",
    )

    # ── LLM ───────────────────────────────────────────────────────────
    LLM_PROVIDER: Literal["litellm", "openrouter", "gemini"] = Field(
        default="litellm",
        description="补全服务提供方",
    )
    DEFAULT_MODEL: str = Field(
        default="mistralai/mistral-7b-instruct",
        description="客户端未指定模型时使用的默认模型",
    )
    COMPLETION_TEMPERATURE: float = Field(default=0.7, description="补全采样温度")

    LITELLM_URL: str = Field(
        default="http://localhost:4000",
        description="LiteLLM 代理地址",
    )
    LITELLM_TIMEOUT: float = Field(default=90.0, description="LiteLLM 请求超时（秒），本地模型较慢")

    OPENROUTER_API_KEY: str = Field(default="", description="OpenRouter API Key")
    OPENROUTER_BASE_URL: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter API 地址",
    )
    OPENROUTER_TIMEOUT: float = Field(default=30.0, description="OpenRouter 请求超时（秒）")
    OPENROUTER_REFERER: str = Field(default="https://botanic.chat", description="HTTP-Referer 头")
    OPENROUTER_TITLE: str = Field(default="Botanic Chat", description="X-Title 头")

    GEMINI_API_KEY: str = Field(default="", description="Google Gemini API Key")

    # ── WebSocket / Hub ───────────────────────────────────────────────
    WS_SEND_QUEUE_SIZE: int = Field(default=256, ge=1, description="每个连接的发送队列容量")
    WS_MAX_MESSAGE_SIZE: int = Field(default=4096, ge=1, description="单帧最大字节数")
    WS_WRITE_WAIT: float = Field(default=10.0, gt=0, description="单次写入超时（秒）")
    WS_PONG_WAIT: float = Field(default=60.0, gt=0, description="心跳等待窗口（秒）")
    HUB_SEND_ERROR_FRAMES: bool = Field(
        default=True,
        description="补全失败时是否向房间推送 error 帧",
    )

    # ── 服务 ──────────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0", description="服务监听地址")
    PORT: int = Field(default=8000, description="服务监听端口")
    LOG_LEVEL: str = Field(default="INFO", description="日志级别（可被环境属性覆盖）")
    ALLOWED_ORIGINS: list[str] = Field(
        default=["http://localhost:5173"],
        description="prod 环境允许的 CORS 来源",
    )

    # ── Pydantic Settings ─────────────────────────────────────────────
    # 先加载 .env.{env} 再加载 .env，前者优先级更高
    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 环境判断 ──────────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """当前是否为生产环境。"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_test(self) -> bool:
        """当前是否为测试环境。"""
        return self.ENVIRONMENT == "test"

    @property
    def is_dev(self) -> bool:
        """当前是否为开发环境。"""
        return self.ENVIRONMENT == "dev"

    # ── 环境差异化行为 ────────────────────────────────────────────────

    @property
    def debug(self) -> bool:
        """是否开启 debug 模式。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def reload(self) -> bool:
        """是否开启热重载。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def effective_log_level(self) -> str:
        """根据环境自动推断日志级别。

        - dev  → INFO
        - test → DEBUG（方便排查测试失败）
        - prod → WARNING（减少噪音）

        如果环境变量中显式设置了 LOG_LEVEL，会覆盖此默认推断。
        """
        env_log = os.getenv("LOG_LEVEL")
        if env_log:
            return env_log
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    @property
    def allow_cors_all_origins(self) -> bool:
        """是否允许所有 CORS 来源。非 prod 环境允许，方便本地调试。"""
        return not self.is_prod

    @property
    def ws_ping_period(self) -> float:
        """心跳发送间隔，必须小于 ``WS_PONG_WAIT``。"""
        return self.WS_PONG_WAIT * 9 / 10


@lru_cache
def get_settings() -> Settings:
    """获取全局 Settings 单例（带缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()
