"""
botanic.main
~~~~~~~~~~~~

FastAPI 应用入口 —— 注册路由、挂载中间件、定义生命周期。
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from botanic.api import rooms, ws
from botanic.core.config import settings
from botanic.core.logging import get_logger, request_id_ctx_var, setup_logging
from botanic.llm.client import create_completion_client
from botanic.schemas import ApiResponse
from botanic.services.hub import ConnectionHub

# 初始化日志系统（必须在其他模块之前）
setup_logging()
logger = get_logger(__name__)


# ── 生命周期 ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期钩子，仅在 worker 启动/关闭时各执行一次。"""
    # ── 启动 ──
    completion_client = create_completion_client(settings)
    hub = ConnectionHub(
        completion_client,
        default_model=settings.DEFAULT_MODEL,
        temperature=settings.COMPLETION_TEMPERATURE,
        send_error_frames=settings.HUB_SEND_ERROR_FRAMES,
    )
    await hub.start()
    app.state.hub = hub
    logger.info(
        "🚀 应用已启动 | env=%s | provider=%s | log_level=%s",
        settings.ENVIRONMENT,
        settings.LLM_PROVIDER,
        settings.effective_log_level,
    )
    yield
    # ── 关闭 ──
    await hub.stop()
    await completion_client.aclose()
    logger.info("👋 应用已关闭")


# ── 创建 FastAPI 实例 ─────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="Botanic 聊天后端 API",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

# ── CORS 中间件 ───────────────────────────────────────────────────────
if settings.allow_cors_all_origins:
    # dev / test 环境：允许所有来源，方便本地调试
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=300,
    )


@app.middleware("http")
async def request_id_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """为每个 HTTP 请求绑定请求 ID，并回写到 ``X-Request-ID`` 响应头。"""
    req_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    token = request_id_ctx_var.set(req_id)
    try:
        response = await call_next(request)
    finally:
        request_id_ctx_var.reset(token)
    response.headers["X-Request-ID"] = req_id
    return response


# ── 路由挂载 ──────────────────────────────────────────────────────────
app.include_router(rooms.router, prefix="/api", tags=["Rooms"])
app.include_router(ws.router, tags=["WebSocket Chat"])


# ── 全局异常处理器 ────────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """捕获所有未处理异常，返回统一的 ApiResponse.fail() 格式。"""
    logger.error("未捕获异常: %s %s -> %s", request.method, request.url, exc, exc_info=True)
    # 非 prod 环境返回详细错误信息，prod 环境隐藏内部细节
    detail = str(exc) if not settings.is_prod else "服务器内部错误"
    response = ApiResponse.fail(msg=detail, code=500, data=None)
    return JSONResponse(
        status_code=500,
        content=response.model_dump(),
    )


@app.get("/health", tags=["System"])
async def health_check(request: Request) -> JSONResponse:
    """验证服务是否正常运行。"""
    hub: ConnectionHub = request.app.state.hub
    return JSONResponse(
        content={
            "status": "ok" if hub.running else "degraded",
            "environment": settings.ENVIRONMENT,
            "provider": settings.LLM_PROVIDER,
            "rooms": len(hub.rooms),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "botanic.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,  # 仅 dev 环境开启热重载
        log_level=settings.effective_log_level.lower(),
    )
