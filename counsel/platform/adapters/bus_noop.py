import json
import logging
from counsel.platform.ports.event_bus import EventBusPort

log = logging.getLogger("bus.noop")

class NoopEventBus(EventBusPort):
    """Local/dev bus: events only go to the log."""

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        log.info(f"[NOOP BUS] topic={topic} event={value.get('event_type')} key={key} value={json.dumps(value, default=str)}")

    async def close(self) -> None:
        return None
