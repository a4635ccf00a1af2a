"""
Transactional outbox relay.
"""

import json
from unittest.mock import AsyncMock

from sqlalchemy import select

from counsel.modules.events.outbox import EventOutbox, OutboxService, relay_once, TOPIC


class TestRelay:
    async def test_publishes_pending_events(self, session):
        await OutboxService(session).enqueue("SLOTS_CREATED", "consultant", "c-1", {"count": 2})
        await session.commit()
        bus = AsyncMock()

        claimed = await relay_once(session, bus)

        assert claimed == 1
        bus.publish.assert_awaited_once()
        kwargs = bus.publish.await_args.kwargs
        assert kwargs["topic"] == TOPIC
        assert kwargs["key"] == "c-1"
        assert kwargs["value"]["event_type"] == "SLOTS_CREATED"
        assert kwargs["value"]["payload"] == {"count": 2}

        ev = (await session.execute(select(EventOutbox))).scalar_one()
        assert ev.status == "sent"
        assert await relay_once(session, bus) == 0

    async def test_failed_publish_is_retried_later(self, session):
        await OutboxService(session).enqueue("SLOT_DELETED", "slot", "s-1", {})
        await session.commit()
        bus = AsyncMock()
        bus.publish.side_effect = RuntimeError("stream unavailable")

        assert await relay_once(session, bus) == 1

        ev = (await session.execute(select(EventOutbox))).scalar_one()
        assert ev.status == "pending"
        assert ev.attempts == 1
        assert ev.last_error == "stream unavailable"
        # backoff pushes the next attempt into the future
        assert await relay_once(session, bus) == 0


class TestRedisBus:
    async def test_xadd_fields(self):
        from counsel.platform.adapters.bus_redis import RedisEventBus, DEFAULT_STREAM

        client = AsyncMock()
        bus = RedisEventBus(client=client)
        envelope = {
            "event_type": "APPOINTMENT_CREATED",
            "subject": {"type": "appointment", "id": "a-1"},
            "payload": {"slot_id": "s-1"},
            "outbox_id": "o-1",
        }

        await bus.publish(topic=TOPIC, key="a-1", value=envelope)

        client.xadd.assert_awaited_once()
        stream, fields = client.xadd.await_args.args
        assert stream == DEFAULT_STREAM
        assert fields["event_type"] == "APPOINTMENT_CREATED"
        assert fields["subject_type"] == "appointment"
        assert json.loads(fields["value"])["payload"] == {"slot_id": "s-1"}

        await bus.close()
        client.aclose.assert_awaited_once()


class TestRegistry:
    async def test_noop_bus_by_default(self):
        from counsel.platform.adapters.bus_noop import NoopEventBus
        from counsel.platform.provider_registry import registry

        bus = registry.event_bus()
        assert isinstance(bus, NoopEventBus)
        assert registry.event_bus() is bus
        await bus.publish(topic=TOPIC, key="k", value={"event_type": "PING"})

        await registry.close()
        assert registry.event_bus() is not bus
        await registry.close()
