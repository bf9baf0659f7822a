"""
API依赖项 - 从应用状态取出聊天服务
"""
from fastapi import Request

from application.services.chat_service import ChatService
from core.config import ChatSettings


def get_chat_service(request: Request) -> ChatService:
    svc = getattr(request.app.state, "chat_service", None)
    if svc is None:
        raise RuntimeError("Chat service not initialized. Ensure lifespan sets app.state.chat_service.")
    return svc


def get_chat_settings(request: Request) -> ChatSettings:
    return request.app.state.settings.chat
