"""
聊天持久化接口 - 只定义能做什么，不管怎么做
"""
from abc import ABC, abstractmethod
from typing import Dict, List

from .entity import Message, User


class ChatStore(ABC):
    """Durable store for messages and user records.

    Every method may raise; the room treats failures as non-fatal.
    Implementations may cap how many messages they retain.
    """

    @abstractmethod
    async def save_message(self, message: Message) -> None:
        """持久化一条消息"""
        pass

    @abstractmethod
    async def save_user(self, user: User) -> None:
        """持久化用户记录（按用户名覆盖）"""
        pass

    @abstractmethod
    async def load_recent_messages(self, count: int) -> List[Message]:
        """最近的 count 条消息，按时间正序"""
        pass

    @abstractmethod
    async def load_all_users(self) -> Dict[str, User]:
        """全部用户记录，username -> User"""
        pass

    async def aclose(self) -> None:
        return None

    async def health_check(self) -> bool:
        """后端是否可用；无外部依赖的实现恒为 True"""
        return True
