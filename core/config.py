"""
配置文件 - 项目配置管理
"""
import json
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseModel):
    url: Optional[str] = None
    max_connections: int = 10
    namespace: str = "chat-relay"
    # Sorted-set retention: only the newest N messages are kept
    message_cap: int = 1000


class ChatSettings(BaseModel):
    # auto | redis | memory | none
    store: str = "auto"
    subscriber_queue_max: int = 10
    # drop_new | drop_oldest | disconnect
    overflow_policy: str = "drop_new"
    history_default_limit: int = 50
    startup_load_count: int = 1000
    system_sender: str = "System"
    stream_keepalive_seconds: float = 15.0
    # 0 disables the periodic room check
    monitor_interval_seconds: float = 300.0


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Chat Relay")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8080)

    redis: RedisSettings = Field(default_factory=RedisSettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)

    # CORS配置（流式接口要求允许跨域）
    CORS_ORIGINS: list = Field(default=["*"])

    # 日志/请求体记录配置
    LOG_LEVEL: Optional[str] = Field(default=None)
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=False)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v

    @field_validator("chat")
    @classmethod
    def _check_chat(cls, v: ChatSettings) -> ChatSettings:
        if v.subscriber_queue_max < 1:
            raise ValueError("chat.subscriber_queue_max must be >= 1")
        if v.history_default_limit < 1:
            raise ValueError("chat.history_default_limit must be >= 1")
        v.store = v.store.lower()
        v.overflow_policy = v.overflow_policy.lower()
        return v


settings = Settings()
