"""
Change notification for prompt catalogs and override state.

Three pieces:
- ChangeBus: in-process publish/subscribe, delivered synchronously
- RedisChangeRelay: mirrors bus events to other processes over Redis pub/sub
- FileChangeWatcher: notices files rewritten behind this process's back
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiofiles.os

logger = logging.getLogger(__name__)

RESOURCE_PROMPTS = "prompts"
RESOURCE_OVERRIDES = "overrides"

# Identifies events raised by this process when relayed elsewhere
PROCESS_ORIGIN = uuid4().hex


@dataclass(frozen=True)
class ChangeEvent:
    """A write to one of the shared stores."""

    resource: str
    action: str
    key: str | None = None
    catalog: str | None = None
    origin: str = PROCESS_ORIGIN
    remote: bool = False
    timestamp: float = field(default_factory=time.time)

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ChangeEvent":
        return cls(
            resource=str(data["resource"]),
            action=str(data.get("action", "changed")),
            key=data.get("key"),
            catalog=data.get("catalog"),
            origin=str(data.get("origin", "")),
            remote=bool(data.get("remote", False)),
            timestamp=float(data.get("timestamp", time.time())),
        )


Subscriber = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by ChangeBus.subscribe()."""

    def __init__(
        self,
        bus: "ChangeBus",
        callback: Subscriber,
        resources: frozenset[str] | None,
    ):
        self._bus = bus
        self.callback = callback
        self.resources = resources
        self.active = True

    def accepts(self, event: ChangeEvent) -> bool:
        return self.resources is None or event.resource in self.resources

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._bus._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class ChangeBus:
    """
    In-process event channel.

    publish() calls every current subscriber before it returns, so a
    writer that reads right after writing sees its own change everywhere
    in the process. Subscribers must not block; anything async should be
    scheduled as a task.
    """

    def __init__(self):
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        callback: Subscriber,
        resources: Iterable[str] | None = None,
    ) -> Subscription:
        """Register a callback, optionally limited to some resources."""
        subscription = Subscription(
            self,
            callback,
            frozenset(resources) if resources is not None else None,
        )
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event; returns the number of subscribers reached."""
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.active or not subscription.accepts(event):
                continue
            try:
                subscription.callback(event)
                delivered += 1
            except Exception as e:
                logger.exception(f"Change subscriber failed on {event.resource}:{event.action}: {e}")
        return delivered


class RedisChangeRelay:
    """
    Bridges a ChangeBus to a Redis pub/sub channel.

    Local events are published to Redis; messages from other origins are
    re-published locally with remote=True and never forwarded again.
    """

    def __init__(
        self,
        bus: ChangeBus,
        redis,
        channel: str,
        origin: str = PROCESS_ORIGIN,
    ):
        self._bus = bus
        self._redis = redis
        self._channel = channel
        self._origin = origin
        self._subscription: Subscription | None = None
        self._pubsub = None
        self._listener: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    async def start(self) -> None:
        self._subscription = self._bus.subscribe(self._forward)
        self._pubsub = self._redis.pubsub()
        await self._pubsub.subscribe(self._channel)
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Change relay listening on Redis channel {self._channel}")

    async def stop(self) -> None:
        if self._subscription:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._listener:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
            self._pubsub = None

    def _forward(self, event: ChangeEvent) -> None:
        if event.remote or event.origin != self._origin:
            return
        task = asyncio.get_running_loop().create_task(self.publish_remote(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def publish_remote(self, event: ChangeEvent) -> None:
        try:
            await self._redis.publish(self._channel, json.dumps(event.to_payload()))
        except Exception as e:
            # Local subscribers already have the change; peers will catch up on reload
            logger.warning(f"Failed to relay change event to Redis: {e}")

    async def _listen(self) -> None:
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            self.handle_message(message.get("data"))

    def handle_message(self, raw: str | bytes | None) -> bool:
        """Re-publish a relayed event locally. Returns True if delivered."""
        if raw is None:
            return False
        try:
            event = ChangeEvent.from_payload(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring malformed change message: {e}")
            return False

        if event.origin == self._origin:
            return False

        self._bus.publish(replace(event, remote=True))
        return True


@dataclass
class _WatchedFile:
    path: Path
    resource: str
    catalog: str | None
    signature: tuple[int, int] | None = None


class FileChangeWatcher:
    """
    Polls file metadata and publishes a remote change event when a
    watched file is created, rewritten or removed.
    """

    def __init__(self, bus: ChangeBus, interval: float = 1.0):
        self._bus = bus
        self._interval = interval
        self._files: dict[Path, _WatchedFile] = {}
        self._task: asyncio.Task | None = None

    @staticmethod
    async def _signature(path: Path) -> tuple[int, int] | None:
        try:
            stat = await aiofiles.os.stat(path)
        except FileNotFoundError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    async def watch(self, path: Path, resource: str, catalog: str | None = None) -> None:
        """Start tracking a file from its current state."""
        path = Path(path)
        self._files[path] = _WatchedFile(
            path=path,
            resource=resource,
            catalog=catalog,
            signature=await self._signature(path),
        )

    async def poll(self) -> list[ChangeEvent]:
        """Check every watched file once and publish what changed."""
        events = []
        for watched in self._files.values():
            signature = await self._signature(watched.path)
            if signature == watched.signature:
                continue
            watched.signature = signature
            event = ChangeEvent(
                resource=watched.resource,
                action="changed",
                catalog=watched.catalog,
                remote=True,
            )
            logger.debug(f"Detected change in {watched.path}")
            self._bus.publish(event)
            events.append(event)
        return events

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.poll()
            except OSError as e:
                logger.warning(f"File watch poll failed: {e}")

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
