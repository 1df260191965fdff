"""
Change feed broker for push invalidation.

Every insert/update publishes a `ChangeEvent` on the channel
`{prefix}:{table}:{user_id}`. Subscribers receive a handle that queues
events until the owner drains them on its own thread, and releases the
underlying channel on `close()`.

Supports an in-memory broker for tests/local runs and a Redis pub/sub
implementation for production.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from shared.types import ChangeEvent, ChangeEventType

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_PREFIX = "robinhood:changes"


def channel_name(prefix: str, table: str, user_id: str) -> str:
    return f"{prefix}:{table}:{user_id}"


def encode_event(event: ChangeEvent) -> str:
    return json.dumps(asdict(event), default=str)


def decode_event(raw: bytes | str) -> ChangeEvent:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    payload = json.loads(raw)
    return ChangeEvent(
        table=payload["table"],
        event_type=ChangeEventType(payload["event_type"]),
        user_id=payload["user_id"],
        record_id=payload.get("record_id"),
        record=payload.get("record"),
    )


class Subscription(Protocol):
    """Handle for one open channel subscription."""

    channel: str

    @property
    def closed(self) -> bool:
        ...

    def drain(self) -> list[ChangeEvent]:
        ...

    def close(self) -> None:
        ...


class ChangeBroker(Protocol):
    """Minimal pub/sub interface for change events."""

    def publish(self, event: ChangeEvent) -> None:
        ...

    def subscribe(self, table: str, user_id: str) -> Subscription:
        ...


@dataclass
class InMemorySubscription:
    """Queue-backed subscription owned by an `InMemoryChangeBroker`."""

    channel: str
    broker: "InMemoryChangeBroker"
    events: deque = field(default_factory=deque)
    _closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    def drain(self) -> list[ChangeEvent]:
        drained = list(self.events)
        self.events.clear()
        return drained

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.events.clear()
        self.broker._detach(self)

    def __enter__(self) -> "InMemorySubscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass
class InMemoryChangeBroker:
    """Fan-out broker kept in process memory."""

    prefix: str = DEFAULT_CHANNEL_PREFIX
    subscribers: dict[str, list[InMemorySubscription]] = field(default_factory=dict)
    published: list[ChangeEvent] = field(default_factory=list)

    def publish(self, event: ChangeEvent) -> None:
        self.published.append(event)
        channel = channel_name(self.prefix, event.table, event.user_id)
        for subscription in self.subscribers.get(channel, []):
            subscription.events.append(event)

    def subscribe(self, table: str, user_id: str) -> InMemorySubscription:
        channel = channel_name(self.prefix, table, user_id)
        subscription = InMemorySubscription(channel=channel, broker=self)
        self.subscribers.setdefault(channel, []).append(subscription)
        return subscription

    def subscriber_count(self, table: str, user_id: str) -> int:
        return len(self.subscribers.get(channel_name(self.prefix, table, user_id), []))

    def _detach(self, subscription: InMemorySubscription) -> None:
        remaining = [
            s for s in self.subscribers.get(subscription.channel, []) if s is not subscription
        ]
        if remaining:
            self.subscribers[subscription.channel] = remaining
        else:
            self.subscribers.pop(subscription.channel, None)


class RedisSubscription:
    """Redis pub/sub subscription polled without blocking."""

    def __init__(self, client: redis.Redis, channel: str):
        self.channel = channel
        self._pubsub = client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(channel)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def drain(self) -> list[ChangeEvent]:
        if self._closed:
            return []
        events: list[ChangeEvent] = []
        try:
            while True:
                message = self._pubsub.get_message(timeout=0)
                if message is None:
                    break
                if message.get("type") != "message":
                    continue
                try:
                    events.append(decode_event(message["data"]))
                except (KeyError, ValueError) as e:
                    logger.warning("Dropping malformed change event on %s: %s", self.channel, e)
        except redis_exceptions.ConnectionError:
            # Managed Redis can reset idle connections; redis-py resubscribes
            # on the next read, so report what was collected so far.
            logger.warning("Change feed connection reset on %s", self.channel)
        return events

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._pubsub.unsubscribe(self.channel)
        finally:
            self._pubsub.close()

    def __enter__(self) -> "RedisSubscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass
class RedisChangeBroker:
    """Redis-backed broker using PUBLISH/SUBSCRIBE."""

    url: str
    prefix: str = DEFAULT_CHANNEL_PREFIX
    client: Optional[redis.Redis] = None

    def __post_init__(self):
        if self.client is None:
            self.client = redis.Redis.from_url(self.url)

    def publish(self, event: ChangeEvent) -> None:
        channel = channel_name(self.prefix, event.table, event.user_id)
        self.client.publish(channel, encode_event(event))

    def subscribe(self, table: str, user_id: str) -> RedisSubscription:
        return RedisSubscription(self.client, channel_name(self.prefix, table, user_id))
