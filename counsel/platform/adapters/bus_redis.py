import json
import logging
from redis.asyncio import from_url as redis_from_url
from counsel.platform.ports.event_bus import EventBusPort
from counsel.core.config import settings

log = logging.getLogger("bus.redis")

DEFAULT_STREAM = "counsel.events"

class RedisEventBus(EventBusPort):
    """Appends outbox envelopes to a Redis stream (XADD, approximately capped)."""

    def __init__(self, client=None):
        if client is None:
            if not settings.REDIS_URL:
                raise RuntimeError("REDIS_URL not configured")
            client = redis_from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        self.redis = client
        self.stream = settings.REDIS_STREAM or DEFAULT_STREAM

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        subject = value.get("subject") or {}
        # flat fields let consumers filter on event type without decoding the body
        fields = {
            "topic": topic,
            "key": key,
            "event_type": value.get("event_type", ""),
            "subject_type": subject.get("type", ""),
            "outbox_id": value.get("outbox_id", ""),
            "value": json.dumps(value, default=str),
            "headers": json.dumps(headers or {}),
        }
        msg_id = await self.redis.xadd(self.stream, fields, maxlen=settings.REDIS_STREAM_MAXLEN, approximate=True)
        log.debug(f"[REDIS BUS] XADD stream={self.stream} id={msg_id} event={fields['event_type']} key={key}")

    async def close(self) -> None:
        await self.redis.aclose()
