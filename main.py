"""
FastAPI应用主入口 - 群聊广播服务
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import chat as chat_routes
from application.services.chat_service import ChatService
from application.services.room_monitor import RoomMonitor
from application.services.room_state import RoomState
from core.config import Settings, settings as default_settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from domain.chat.store import ChatStore
from infrastructure.external.cache import init_redis_client, shutdown_redis_client
from infrastructure.repositories.memory_chat_store import InMemoryChatStore
from infrastructure.repositories.redis_chat_store import RedisChatStore


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


async def build_chat_store(cfg: Settings) -> Optional[ChatStore]:
    """按 chat.store 选择持久化：auto -> redis(if url) else memory。

    Redis 不可用时记录错误并回退到内存存储，服务照常启动。
    """
    choice = cfg.chat.store
    if choice == "none":
        logger.info("chat_store_selected", provider="none")
        return None
    if choice in {"auto", "redis"}:
        if cfg.redis.url:
            try:
                client = await init_redis_client(
                    cfg.redis.url,
                    namespace=cfg.redis.namespace,
                    max_connections=cfg.redis.max_connections,
                )
                logger.info("chat_store_selected", provider="redis")
                return RedisChatStore(client, message_cap=cfg.redis.message_cap)
            except Exception as exc:
                logger.error("chat_store_redis_init_failed", error=str(exc), fallback="memory")
        elif choice == "redis":
            logger.warning("chat_store_redis_missing_url", message="REDIS__URL not set, falling back to in-memory store")
    elif choice != "memory":
        logger.warning("chat_store_unknown", provider=choice, fallback="memory")
    logger.info("chat_store_selected", provider="memory")
    return InMemoryChatStore(message_cap=cfg.redis.message_cap)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    cfg = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        store = await build_chat_store(cfg)
        service = ChatService(
            room=RoomState(),
            store=store,
            system_sender=cfg.chat.system_sender,
            history_default_limit=cfg.chat.history_default_limit,
            startup_load_count=cfg.chat.startup_load_count,
        )
        await service.restore()
        monitor = RoomMonitor(service, interval_seconds=cfg.chat.monitor_interval_seconds)
        monitor.start()
        app.state.chat_service = service
        app.state.room_monitor = monitor
        logger.info("chat_server_started", host=cfg.HOST, port=cfg.PORT)

        yield

        await monitor.aclose()
        await service.aclose()
        if isinstance(store, RedisChatStore):
            await shutdown_redis_client()
        logger.info("application_shutdown", message="Application shutdown")

    app = FastAPI(
        title=cfg.PROJECT_NAME,
        version=cfg.VERSION,
        debug=cfg.DEBUG,
        lifespan=lifespan,
        description="Single-room group chat relay with SSE fan-out",
    )
    app.state.settings = cfg

    # 添加中间件（注意顺序：后添加的先执行）
    app.add_middleware(
        LoggingMiddleware,
        enable_body_log=cfg.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT,
        max_body_log_bytes=cfg.LOG_REQUEST_BODY_MAX_BYTES,
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    register_exception_handlers(app)
    app.include_router(chat_routes.router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """健康检查端点：附带持久化存储的连通性"""
        service = getattr(request.app.state, "chat_service", None)
        store = await service.store_health() if service is not None else "none"
        return {"status": "healthy", "store": store}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    # 单进程：房间状态与订阅者都在内存中
    uvicorn.run(
        "main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        workers=1,
        log_level="debug" if default_settings.DEBUG else "info",
    )
