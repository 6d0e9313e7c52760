"""
Change feed: notifies subscribers whenever shifts, store hours or templates of a
location change. The schedule cache subscribes to drop stale snapshots.

Optionally mirrored over Redis pub/sub so other processes see the same events.
"""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "storeshift:changes:"

Listener = Callable[["ChangeEvent"], None]


@dataclass(frozen=True)
class ChangeEvent:
    location_id: uuid.UUID
    kind: str  # shift | store_hours | template
    action: str  # create | update | delete | publish
    entity_ids: tuple[uuid.UUID, ...] = field(default_factory=tuple)

    def to_json(self, origin: str) -> str:
        return json.dumps({
            "origin": origin,
            "location_id": str(self.location_id),
            "kind": self.kind,
            "action": self.action,
            "entity_ids": [str(i) for i in self.entity_ids],
        })

    @classmethod
    def from_json(cls, raw: str) -> tuple[str, "ChangeEvent"]:
        data = json.loads(raw)
        event = cls(
            location_id=uuid.UUID(data["location_id"]),
            kind=data["kind"],
            action=data["action"],
            entity_ids=tuple(uuid.UUID(i) for i in data.get("entity_ids", [])),
        )
        return data.get("origin", ""), event


class ChangeFeed:

    def __init__(self, redis_getter: Callable[[], Awaitable] | None = None):
        self._listeners: list[Listener] = []
        self._redis_getter = redis_getter
        self.origin = uuid.uuid4().hex

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    async def publish(self, event: ChangeEvent) -> None:
        self._dispatch(event)
        if self._redis_getter is None:
            return
        try:
            redis = await self._redis_getter()
            await redis.publish(f"{CHANNEL_PREFIX}{event.location_id}", event.to_json(self.origin))
        except RedisError as exc:
            # Local subscribers already saw the event; remote caches expire on their own
            logger.warning("Could not publish change event for location %s: %s", event.location_id, exc)

    async def listen_remote(self) -> None:
        """Relay events published by other processes to local subscribers. Runs until cancelled."""
        if self._redis_getter is None:
            return
        redis = await self._redis_getter()
        pubsub = redis.pubsub()
        await pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
        try:
            async for message in pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                origin, event = ChangeEvent.from_json(message["data"])
                if origin == self.origin:
                    continue
                self._dispatch(event)
        finally:
            await pubsub.punsubscribe()
            await pubsub.aclose()
