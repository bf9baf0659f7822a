"""
请求/响应日志中间件
记录HTTP请求和响应，包括耗时统计

Pure ASGI: the request body is observed as it streams to the app (never
consumed here), and streaming responses are logged when their headers go
out rather than when the stream ends.
"""
import json
import time
from typing import Any, Optional
from urllib.parse import parse_qs

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class LoggingMiddleware:
    """
    日志记录中间件

    1. 记录请求信息（方法、路径、查询参数、表单/JSON 请求体）
    2. 记录响应信息（状态码、耗时）
    3. 记录异常信息
    """

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    # 聊天正文同样不落日志
    SENSITIVE_FIELDS = {"password", "token", "secret", "api_key", "access_token", "content"}

    def __init__(
        self,
        app: ASGIApp,
        *,
        enable_body_log: Optional[bool] = None,
        max_body_log_bytes: Optional[int] = None,
    ) -> None:
        self.app = app
        self.enable_body_log: bool = (
            settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT if enable_body_log is None else enable_body_log
        )
        self.max_body_log_bytes: int = (
            settings.LOG_REQUEST_BODY_MAX_BYTES if max_body_log_bytes is None else max_body_log_bytes
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path") in self.SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        headers = Headers(scope=scope)
        request_info: dict = {
            "method": scope.get("method"),
            "path": scope.get("path"),
        }
        query = scope.get("query_string", b"").decode("latin-1")
        if query:
            request_info["query_params"] = {k: v[0] if len(v) == 1 else v for k, v in parse_qs(query).items()}
        user_agent = headers.get("user-agent")
        if user_agent:
            request_info["user_agent"] = user_agent

        logger.info("request_started", **request_info)

        body = bytearray()
        log_body = self.enable_body_log and scope.get("method") in {"POST", "PUT", "PATCH"}

        async def receive_wrapper() -> Message:
            message = await receive()
            if log_body and message["type"] == "http.request" and len(body) < self.max_body_log_bytes:
                body.extend(message.get("body", b"")[: self.max_body_log_bytes - len(body)])
            return message

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                duration = time.time() - start_time
                info = dict(request_info)
                parsed = self._parse_body(bytes(body), headers.get("content-type", "")) if body else None
                if parsed is not None:
                    info["body"] = parsed
                self._log_response(message["status"], duration, info)
            await send(message)

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=time.time() - start_time,
                error=str(exc),
                error_type=type(exc).__name__,
                **request_info,
                exc_info=True,
            )
            raise

    def _parse_body(self, raw: bytes, content_type: str) -> Optional[Any]:
        content_type = content_type.lower()
        text = raw.decode("utf-8", errors="ignore")
        if "application/json" in content_type:
            try:
                parsed: Any = json.loads(text)
            except ValueError:
                parsed = text
        elif "application/x-www-form-urlencoded" in content_type:
            parsed = {k: v if len(v) > 1 else v[0] for k, v in parse_qs(text).items()}
        elif "multipart/form-data" in content_type:
            return {"multipart": True}
        else:
            parsed = text
        return self._sanitize_data(parsed)

    def _sanitize_data(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: ("***" if k.lower() in self.SENSITIVE_FIELDS else self._sanitize_data(v)) for k, v in data.items()}
        if isinstance(data, list):
            return [self._sanitize_data(v) for v in data]
        return data

    @staticmethod
    def _log_response(status_code: int, duration: float, request_info: dict) -> None:
        """根据状态码选择日志级别"""
        log_data = {"status_code": status_code, "duration": round(duration, 6), **request_info}
        if status_code < 400:
            logger.info("request_completed", **log_data)
        elif status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
