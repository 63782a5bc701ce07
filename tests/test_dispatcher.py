from __future__ import annotations

import asyncio

from fakes import FakeClock, FakeTransport, make_message

from core.action_queue import QueueItem
from core.rate_limiter import RateLimiter
from core.service import TriageService


def _service(transport: FakeTransport, clock: FakeClock) -> TriageService:
    return TriageService(transport, limiter=RateLimiter(clock=clock))


async def _tick(service: TriageService) -> bool:
    consumed = await service.dispatcher.tick()
    await service.dispatcher.settle()
    return consumed


def test_one_per_minute_sends_once_and_keeps_second_queued() -> None:
    transport = FakeTransport()
    clock = FakeClock()
    service = _service(transport, clock)
    service.start({"rateLimit": 1, "cooldown": 0}, [{"name": "Ahmed", "emoji": "👍"}])

    async def scenario() -> None:
        await service.router.route(make_message("Ahmed here", message_id=1))
        clock.advance(1)
        await service.router.route(make_message("Ahmed again", message_id=2))

        assert await _tick(service)
        clock.advance(1)
        assert not await _tick(service)
        assert len(service.queue) == 1
        assert transport.reactions == [("g1", 1, "👍")]

        clock.advance(59)
        assert await _tick(service)
        assert transport.reactions == [("g1", 1, "👍"), ("g1", 2, "👍")]

    asyncio.run(scenario())


def test_at_most_one_action_per_tick_in_queue_order() -> None:
    transport = FakeTransport()
    service = _service(transport, FakeClock())
    service.start({"rateLimit": 20, "cooldown": 0}, [{"name": "Ahmed"}])

    async def scenario() -> None:
        for index, group in enumerate(["g1", "g2", "g3"], start=1):
            await service.router.route(make_message("ahmed", conversation_id=group, message_id=index))

        await _tick(service)
        assert len(transport.reactions) == 1
        await _tick(service)
        await _tick(service)
        assert [reaction[0] for reaction in transport.reactions] == ["g1", "g2", "g3"]
        assert not await _tick(service)

    asyncio.run(scenario())


def test_blocked_head_is_not_overtaken() -> None:
    transport = FakeTransport()
    clock = FakeClock()
    service = _service(transport, clock)
    service.start({"rateLimit": 20, "cooldown": 10}, [{"name": "Ahmed"}])

    async def scenario() -> None:
        await service.router.route(make_message("ahmed", conversation_id="a", message_id=1))
        await service.router.route(make_message("ahmed", conversation_id="a", message_id=2))
        await service.router.route(make_message("ahmed", conversation_id="b", message_id=3))

        await _tick(service)
        clock.advance(1)
        assert not await _tick(service)
        assert transport.reactions == [("a", 1, "✅")]
        assert [item.conversation_id for item in service.queue] == ["a", "b"]

        clock.advance(10)
        await _tick(service)
        await _tick(service)
        assert [reaction[1] for reaction in transport.reactions] == [1, 2, 3]

    asyncio.run(scenario())


def test_stopped_or_disconnected_holds_the_queue() -> None:
    transport = FakeTransport()
    service = _service(transport, FakeClock())
    service.start({}, [{"name": "Ahmed"}])

    async def scenario() -> None:
        await service.router.route(make_message("ahmed"))
        service.stop()
        assert not await _tick(service)
        assert len(service.queue) == 1

        service.start({}, [{"name": "Ahmed"}])
        transport.ready = False
        assert not await _tick(service)
        assert len(service.queue) == 1

        transport.ready = True
        assert await _tick(service)
        assert len(service.queue) == 0

    asyncio.run(scenario())


def test_send_failure_drops_item_without_consuming_quota() -> None:
    transport = FakeTransport()
    transport.fail_sends = True
    service = _service(transport, FakeClock())
    service.start({"rateLimit": 1}, [{"name": "Ahmed"}])

    async def scenario() -> None:
        await service.router.route(make_message("ahmed"))
        assert await _tick(service)

    asyncio.run(scenario())

    assert len(service.queue) == 0
    assert "send_error" in service.activity.events()
    assert service.limiter.snapshot()["actionsLastMinute"] == 0


def test_reply_mode_replies_with_configured_text() -> None:
    transport = FakeTransport()
    service = _service(transport, FakeClock())
    service.start({"mode": "reply", "replyText": "Noted, thanks"}, [{"name": "Ahmed"}])

    async def scenario() -> None:
        await service.router.route(make_message("ahmed", message_id=7))
        await _tick(service)

    asyncio.run(scenario())

    assert transport.replies == [("g1", 7, "Noted, thanks")]
    assert transport.reactions == []
    assert "reply" in service.activity.events()


def test_items_without_a_message_handle() -> None:
    transport = FakeTransport()
    service = _service(transport, FakeClock())
    service.start({"cooldown": 0}, [{"name": "Ahmed"}])
    orphan = QueueItem(conversation_id="g1", text="ahmed", message=None, emoji="✅", client_name="Ahmed")

    async def scenario() -> None:
        service.queue.push(orphan)
        assert await _tick(service)
        assert "send_skipped" in service.activity.events()

        service.start({"mode": "reply", "replyText": "hi"}, [{"name": "Ahmed"}])
        service.queue.push(orphan)
        assert await _tick(service)

    asyncio.run(scenario())

    assert transport.reactions == []
    assert transport.sent == [("g1", "hi")]


def test_stuck_send_does_not_stall_later_items() -> None:
    transport = FakeTransport()
    transport.hang_on.add("stuck")
    service = _service(transport, FakeClock())
    service.start({"rateLimit": 20, "cooldown": 0}, [{"name": "Ahmed"}])

    async def scenario() -> None:
        await service.router.route(make_message("ahmed", conversation_id="stuck", message_id=1))
        await service.router.route(make_message("ahmed", conversation_id="ok", message_id=2))

        loop_task = asyncio.create_task(service.dispatcher.run(0.01))
        await asyncio.sleep(0.2)
        assert transport.reactions == [("ok", 2, "✅")]
        assert len(service.queue) == 0
        assert service.dispatcher.inflight == 1
        assert service.limiter.snapshot()["actionsLastMinute"] == 2

        loop_task.cancel()
        await asyncio.gather(loop_task, return_exceptions=True)
        await service.dispatcher.settle()

    asyncio.run(scenario())

    # The abandoned send hands its slot back.
    assert service.limiter.snapshot()["actionsLastMinute"] == 1


def test_in_flight_send_counts_against_the_minute_cap() -> None:
    transport = FakeTransport()
    transport.hang_on.add("slow")
    service = _service(transport, FakeClock())
    service.start({"rateLimit": 1, "cooldown": 0}, [{"name": "Ahmed"}])

    async def scenario() -> None:
        await service.router.route(make_message("ahmed", conversation_id="slow", message_id=1))
        await service.router.route(make_message("ahmed", conversation_id="other", message_id=2))

        assert await service.dispatcher.tick()
        assert service.dispatcher.inflight == 1
        assert not await service.dispatcher.tick()
        assert len(service.queue) == 1

        transport.unhang.set()
        await service.dispatcher.settle()
        assert transport.reactions == [("slow", 1, "✅")]
        assert not await service.dispatcher.tick()

    asyncio.run(scenario())


def test_run_keeps_ticking_after_a_failed_tick() -> None:
    transport = FakeTransport()
    transport.ready_errors = 1
    service = _service(transport, FakeClock())
    service.start({}, [{"name": "Ahmed"}])

    async def scenario() -> None:
        await service.router.route(make_message("ahmed"))
        loop_task = asyncio.create_task(service.dispatcher.run(0.01))
        await asyncio.sleep(0.1)
        loop_task.cancel()
        await asyncio.gather(loop_task, return_exceptions=True)

    asyncio.run(scenario())

    assert transport.ready_errors == 0
    assert transport.reactions == [("g1", 1, "✅")]
