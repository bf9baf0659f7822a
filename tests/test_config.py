import pytest
from pydantic import ValidationError

from core.config import ChatSettings, Settings


def test_nested_env_overrides(monkeypatch):
    monkeypatch.setenv("CHAT__SUBSCRIBER_QUEUE_MAX", "25")
    monkeypatch.setenv("CHAT__OVERFLOW_POLICY", "DROP_OLDEST")
    monkeypatch.setenv("REDIS__MESSAGE_CAP", "200")
    cfg = Settings()
    assert cfg.chat.subscriber_queue_max == 25
    assert cfg.chat.overflow_policy == "drop_oldest"
    assert cfg.redis.message_cap == 200


def test_cors_origins_accepts_json_list(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", '["http://a.test", "http://b.test"]')
    assert Settings().CORS_ORIGINS == ["http://a.test", "http://b.test"]


def test_defaults_match_room_contract():
    chat = ChatSettings()
    assert chat.subscriber_queue_max == 10
    assert chat.history_default_limit == 50
    assert chat.overflow_policy == "drop_new"


def test_invalid_queue_size_rejected():
    with pytest.raises(ValidationError):
        Settings(chat=ChatSettings(subscriber_queue_max=0))


def test_cors_origins_validator_splits_comma_string():
    assert Settings(CORS_ORIGINS="http://a.test, http://b.test").CORS_ORIGINS == ["http://a.test", "http://b.test"]
