"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_serializer

from domain.chat.entity import Message, User


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class MessageDTO(DTOBase):
    """消息的对外表示"""
    sender: str
    content: str
    timestamp: datetime
    type: Literal["message", "join", "leave", "system"]

    @classmethod
    def from_entity(cls, message: Message) -> "MessageDTO":
        return cls(
            sender=message.sender,
            content=message.content,
            timestamp=message.timestamp,
            type=message.kind.value,
        )


class UserDTO(DTOBase):
    """用户的对外表示"""
    name: str
    last_seen: datetime
    is_online: bool

    @classmethod
    def from_entity(cls, user: User) -> "UserDTO":
        return cls(name=user.name, last_seen=user.last_seen, is_online=user.is_online)


class ActionResponse(DTOBase):
    status: str = "success"
    message: str


class JoinResponse(ActionResponse):
    username: str


class UsersResponse(DTOBase):
    status: str = "success"
    users: List[UserDTO] = Field(default_factory=list)
    total_count: int


class HistoryResponse(DTOBase):
    status: str = "success"
    messages: List[MessageDTO] = Field(default_factory=list)
    count: int
    total: int


class StatusResponse(DTOBase):
    status: str = "online"
    users_online: int
    users_active: int
    users_total: int
    messages_total: int
    subscribers: int
    timestamp: datetime

