"""
Redis客户端封装 - 命名空间、JSON序列化与聊天存储用到的数据结构
"""
from __future__ import annotations

import asyncio
import json
import socket
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from redis import asyncio as aioredis

from core.logging_config import get_logger

logger = get_logger(__name__)


class RedisClient:
    """
    Thin async wrapper around ``redis.asyncio.Redis``.

    - keys are prefixed with the configured namespace
    - values are JSON encoded / decoded transparently
    - RedisError is NOT swallowed here; callers decide how to degrade
    """

    def __init__(
        self,
        client: aioredis.Redis,
        namespace: str = "",
        serializer: Optional[Callable[[Any], str]] = None,
        deserializer: Optional[Callable[[Optional[str]], Any]] = None,
    ):
        self._client = client
        self._namespace = namespace.strip(":")
        self._serializer = serializer or self._default_serializer
        self._deserializer = deserializer or self._default_deserializer

    # ============= 工具方法 =============

    def _format_key(self, key: str) -> str:
        """格式化键名，添加命名空间前缀"""
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    @staticmethod
    def _default_serializer(value: Any) -> str:
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str, ensure_ascii=False, separators=(",", ":"))

    @staticmethod
    def _default_deserializer(value: Optional[str]) -> Any:
        if value is None:
            return None
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return value

    # ============= Hash 操作 =============

    async def hset(self, key: str, field: str, value: Any) -> int:
        return await self._client.hset(self._format_key(key), field, self._serializer(value))

    async def hget(self, key: str, field: str) -> Any:
        value = await self._client.hget(self._format_key(key), field)
        return self._deserializer(value)

    async def hgetall(self, key: str) -> Dict[str, Any]:
        data = await self._client.hgetall(self._format_key(key))
        return {field: self._deserializer(value) for field, value in data.items()}

    # ============= Sorted Set 操作 =============

    async def zadd(self, key: str, mapping: Dict[Any, float]) -> int:
        serialized = {self._serializer(member): score for member, score in mapping.items()}
        return await self._client.zadd(self._format_key(key), serialized)

    async def zrange(
        self,
        key: str,
        start: int = 0,
        stop: int = -1,
        withscores: bool = False,
        desc: bool = False,
    ) -> Union[List[Any], List[Tuple[Any, float]]]:
        if desc:
            result = await self._client.zrevrange(self._format_key(key), start, stop, withscores=withscores)
        else:
            result = await self._client.zrange(self._format_key(key), start, stop, withscores=withscores)
        if withscores:
            return [(self._deserializer(m), score) for m, score in result]
        return [self._deserializer(m) for m in result]

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        return await self._client.zremrangebyrank(self._format_key(key), start, stop)

    async def zcard(self, key: str) -> int:
        return await self._client.zcard(self._format_key(key))

    # ============= 通用操作 =============

    async def health_check(self) -> bool:
        """健康检查"""
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.error("redis_health_check_failed", error=str(e))
            return False

    @property
    def client(self) -> aioredis.Redis:
        """获取原始Redis客户端（谨慎使用）"""
        return self._client


# ============= 全局实例管理 =============

_redis_client: Optional[aioredis.Redis] = None
_cache_instance: Optional[RedisClient] = None
_lock = asyncio.Lock()


def _keepalive_options() -> dict:
    # 构建跨平台 keepalive 选项（若可用）
    if hasattr(socket, "TCP_KEEPIDLE") and hasattr(socket, "TCP_KEEPINTVL") and hasattr(socket, "TCP_KEEPCNT"):
        return {
            socket.TCP_KEEPIDLE: 1,
            socket.TCP_KEEPINTVL: 1,
            socket.TCP_KEEPCNT: 3,
        }
    return {}


async def init_redis_client(
    url: Optional[str],
    *,
    namespace: str = "",
    max_connections: int = 10,
    **kwargs,
) -> RedisClient:
    """
    初始化全局Redis客户端并测试连接

    连接参数全部由调用方传入（来自 create_app 的 Settings）。

    Raises:
        RuntimeError: 未配置 redis.url
        redis.exceptions.RedisError / OSError: 无法连接
    """
    global _redis_client, _cache_instance

    if _cache_instance is not None:
        return _cache_instance

    async with _lock:
        if _cache_instance is not None:
            return _cache_instance

        if not url:
            raise RuntimeError("redis.url is not configured (REDIS__URL)")

        client = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=max_connections,
            socket_keepalive=True,
            socket_keepalive_options=_keepalive_options(),
            **kwargs,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise

        _redis_client = client
        _cache_instance = RedisClient(client=client, namespace=namespace)
        logger.info("redis_client_initialized", namespace=namespace, max_connections=max_connections)
        return _cache_instance


async def shutdown_redis_client() -> None:
    """关闭Redis连接"""
    global _redis_client, _cache_instance

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("redis_client_closed")
        except Exception as e:
            logger.error("redis_client_close_failed", error=str(e))
        finally:
            _redis_client = None
            _cache_instance = None


__all__ = [
    "RedisClient",
    "init_redis_client",
    "shutdown_redis_client",
]
