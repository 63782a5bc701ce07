from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from fakes import BASE_TIME, FakeTransport, make_history, make_message

from core.config import BotSettings, normalize_threshold, parse_timestamp
from core.errors import ConfigurationError
from core.service import TriageService


def test_threshold_accepts_fraction_or_percentage() -> None:
    assert normalize_threshold(0.4) == 0.4
    assert normalize_threshold(60) == 0.6
    assert normalize_threshold(150) == 1.0
    assert normalize_threshold(-1) == 0.0


def test_merge_clamps_numeric_settings() -> None:
    merged = BotSettings().merged({"rateLimit": 0, "cooldown": -5, "threshold": 75})
    assert merged.rate_limit == 1
    assert merged.cooldown_seconds == 0.0
    assert merged.threshold == 0.75


def test_merge_keeps_unsupplied_fields() -> None:
    first = BotSettings().merged({"rateLimit": 5})
    assert first.emoji == "✅"
    second = first.merged({"emoji": "🔥"})
    assert second.rate_limit == 5
    assert second.emoji == "🔥"


def test_archive_settings_and_legacy_keys() -> None:
    merged = BotSettings().merged({"archive": {"enabled": True, "startAt": "2024-05-01T12:00:00Z", "limit": 5}})
    assert merged.archive.enabled
    assert merged.archive.start_at == BASE_TIME
    assert merged.archive.limit == 10

    legacy = BotSettings().merged({"historyOnStart": True, "archiveStart": 1714564800000, "historyLimit": 50})
    assert legacy.archive.enabled
    assert legacy.archive.start_at == BASE_TIME
    assert legacy.archive.limit == 50


def test_parse_timestamp_formats() -> None:
    assert parse_timestamp(None) is None
    assert parse_timestamp("2024-05-01T12:00:00+00:00") == BASE_TIME
    assert parse_timestamp(1714564800) == BASE_TIME
    assert parse_timestamp("1714564800000") == BASE_TIME
    naive = datetime(2024, 5, 1, 12, 0)
    assert parse_timestamp(naive) == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_timestamp_rejects_out_of_range_epochs() -> None:
    for value in (1e300, -1e300, float("inf"), "1e300"):
        with pytest.raises(ValueError):
            parse_timestamp(value)
    with pytest.raises(ConfigurationError):
        parse_timestamp(1e300)


def test_rejected_start_leaves_state_untouched() -> None:
    service = TriageService(FakeTransport())
    with pytest.raises(ConfigurationError):
        service.start({"mode": "reply"}, [{"name": "Ahmed"}])
    with pytest.raises(ConfigurationError):
        service.start({"mode": "shout"}, [{"name": "Ahmed"}])
    assert not service.controller.running
    assert service.controller.roster == []


def test_start_replaces_roster_wholesale() -> None:
    service = TriageService(FakeTransport())
    service.start({}, [{"name": "Ahmed"}, {"name": " "}])
    assert [client.name for client in service.controller.roster] == ["Ahmed"]
    service.start({}, [{"name": "Sara"}])
    assert [client.name for client in service.controller.roster] == ["Sara"]
    service.start({}, None)
    assert service.controller.roster == []


def test_stop_keeps_queued_items() -> None:
    service = TriageService(FakeTransport())
    service.start({}, [{"name": "Ahmed"}])
    asyncio.run(service.router.route(make_message("ahmed")))
    service.stop()
    assert not service.controller.running
    assert len(service.queue) == 1
    assert service.flush_queue() == 1
    assert len(service.queue) == 0


def test_disconnect_stops_the_bot() -> None:
    service = TriageService(FakeTransport())
    service.start({}, [{"name": "Ahmed"}])
    service.on_disconnected("network")
    assert not service.controller.running
    assert service.activity.recent(1)[0].event == "disconnected"


def test_start_triggers_backfill_when_enabled() -> None:
    transport = FakeTransport()
    transport.history["g1"] = make_history("g1", [("ahmed", 1)])
    service = TriageService(transport)
    service.select_groups(["g1"])

    async def scenario() -> None:
        service.start({"archive": {"enabled": True, "startAt": BASE_TIME.isoformat()}}, [{"name": "Ahmed"}])
        await service.wait_background()

    asyncio.run(scenario())

    assert transport.fetch_calls == [("g1", 100, None)]
    assert len(service.queue) == 1


def test_backfill_on_start_failure_is_logged() -> None:
    transport = FakeTransport(ready=False)
    service = TriageService(transport)

    async def scenario() -> None:
        service.start({"historyOnStart": True, "archiveStart": BASE_TIME.isoformat()}, [{"name": "Ahmed"}])
        await service.wait_background()

    asyncio.run(scenario())

    assert service.controller.running
    assert "history_trigger_error" in service.activity.events()
