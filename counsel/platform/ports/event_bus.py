from typing import Protocol, runtime_checkable

# Destination for domain events relayed out of the outbox table
@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None: ...

    async def close(self) -> None: ...
