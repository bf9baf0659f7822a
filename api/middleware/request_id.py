"""
Request ID 中间件
用于生成或透传追踪ID，并绑定到structlog上下文

Implemented as a plain ASGI middleware so long-lived streaming responses
are passed through without buffering.
"""
import uuid

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class RequestIDMiddleware:
    """
    Request ID 追踪中间件

    1. 从请求头获取或生成新的request_id
    2. 将request_id存入request.state与structlog上下文
    3. 在响应头中返回request_id
    """

    HEADER_NAME = "X-Request-ID"

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        request_id = headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        client_ip = self._get_client_ip(scope, headers)

        # request.state 读取的就是 scope["state"]
        state = scope.setdefault("state", {})
        state["request_id"] = request_id
        state["client_ip"] = client_ip

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=scope.get("method"),
            path=scope.get("path"),
        )

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[self.HEADER_NAME] = request_id
            await send(message)

        await self.app(scope, receive, send_wrapper)

    @staticmethod
    def _get_client_ip(scope: Scope, headers: Headers) -> str:
        """获取客户端真实IP（考虑代理）"""
        x_forwarded_for = headers.get("X-Forwarded-For")
        if x_forwarded_for:
            return x_forwarded_for.split(",")[0].strip()
        real_ip = headers.get("X-Real-IP")
        if real_ip:
            return real_ip
        client = scope.get("client")
        return client[0] if client else "unknown"
