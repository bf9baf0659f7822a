import asyncio

import pytest

from application.services.chat_service import ChatService
from application.services.room_monitor import RoomMonitor


@pytest.mark.asyncio
async def test_check_once_reports_counters(service: ChatService):
    await service.join("alice")
    await service.post("alice", "hi")
    report = await RoomMonitor(service).check_once()
    assert report["messages_total"] == 2
    assert report["users_active"] == 1
    assert report["users_online"] == 0
    assert report["persist_failures"] == 0
    assert "timestamp" not in report


@pytest.mark.asyncio
async def test_disabled_monitor_never_starts(service: ChatService):
    monitor = RoomMonitor(service, interval_seconds=0)
    monitor.start()
    assert monitor.running is False
    await monitor.aclose()


@pytest.mark.asyncio
async def test_monitor_loop_runs_and_stops(service: ChatService, monkeypatch):
    monitor = RoomMonitor(service, interval_seconds=0.01)
    calls = []

    async def fake_check():
        calls.append(1)
        return {}

    monkeypatch.setattr(monitor, "check_once", fake_check)
    monitor.start()
    await asyncio.sleep(0.1)
    await monitor.aclose()
    assert calls
    assert monitor.running is False
