"""
聊天室API路由 - join / leave / send / stream / users / history / status
"""
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import StreamingResponse

from api.dependencies import get_chat_service, get_chat_settings
from application.dto import (
    ActionResponse,
    HistoryResponse,
    JoinResponse,
    MessageDTO,
    StatusResponse,
    UserDTO,
    UsersResponse,
)
from application.services.chat_service import ChatService
from application.services.stream_service import StreamSession
from core.config import ChatSettings
from domain.common.exceptions import require_text


router = APIRouter(tags=["Chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "X-Accel-Buffering": "no",
}


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    """Lenient: anything that is not an integer falls back to the default."""
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


@router.post("/join", summary="加入聊天室", response_model=JoinResponse)
async def join(
    username: Optional[str] = Form(None),
    service: ChatService = Depends(get_chat_service),
):
    await service.join(username)
    return JoinResponse(message="Joined successfully", username=username)


@router.post("/leave", summary="离开聊天室", response_model=ActionResponse)
async def leave(
    username: Optional[str] = Form(None),
    service: ChatService = Depends(get_chat_service),
):
    await service.leave(username)
    return ActionResponse(message="Left successfully")


@router.post("/send", summary="发送消息", response_model=ActionResponse)
async def send(
    sender: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    service: ChatService = Depends(get_chat_service),
):
    await service.post(sender, content)
    return ActionResponse(message="Message sent")


@router.get("/stream", summary="实时消息流 (SSE)")
async def stream(
    request: Request,
    user: Optional[str] = Query(None),
    service: ChatService = Depends(get_chat_service),
    chat: ChatSettings = Depends(get_chat_settings),
) -> StreamingResponse:
    """
    首先回放完整历史，然后推送实时消息；客户端断开时结束。

    每个事件为一行 `data: <Message JSON>` 加一个空行。
    """
    username = require_text("user", user)
    session = StreamSession(
        service.room,
        username,
        queue_max=chat.subscriber_queue_max,
        overflow_policy=chat.overflow_policy,
        keepalive_seconds=chat.stream_keepalive_seconds,
        is_disconnected=request.is_disconnected,
    )
    return StreamingResponse(session.events(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/users", summary="在线用户列表", response_model=UsersResponse)
async def users(service: ChatService = Depends(get_chat_service)):
    online = await service.recent_users()
    online.sort(key=lambda u: u.name)
    return UsersResponse(users=[UserDTO.from_entity(u) for u in online], total_count=len(online))


@router.get("/history", summary="消息历史", response_model=HistoryResponse)
async def history(
    limit: Optional[str] = Query(None, description="返回最近的条数，默认50"),
    service: ChatService = Depends(get_chat_service),
):
    messages, total = await service.recent_history(_parse_limit(limit))
    return HistoryResponse(
        messages=[MessageDTO.from_entity(m) for m in messages],
        count=len(messages),
        total=total,
    )


@router.get("/status", summary="服务器状态", response_model=StatusResponse)
async def status(service: ChatService = Depends(get_chat_service)):
    return StatusResponse(**await service.status())
