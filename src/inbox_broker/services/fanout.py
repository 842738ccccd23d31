"""Live fan-out of newly appended messages to inbox subscribers.

The hub is an in-process broadcaster keyed by inbox id and knows nothing about
storage. Each subscription owns a bounded queue on the event loop it was
created on; `publish` may be called from any thread and schedules delivery on
that loop with `call_soon_threadsafe`.

A subscriber that falls behind far enough to fill its queue is dropped so it
can never hold up the others; its consumer sees the end of the stream after
draining what was already queued and is expected to re-query to fill the gap.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable
from contextlib import suppress
from threading import Lock
from types import TracebackType
from typing import cast

from inbox_broker.schemas import MessageRecord

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000

_CLOSED = object()


class Subscription:
    """Cancellable, non-restartable async stream of one inbox's new messages.

    Use it as an async iterator, ideally inside ``async with``::

        async with hub.subscribe(inbox_id) as subscription:
            async for message in subscription:
                ...
    """

    def __init__(
        self,
        hub: FanoutHub,
        inbox_id: str,
        loop: asyncio.AbstractEventLoop,
        maxsize: int,
    ) -> None:
        self.inbox_id = inbox_id
        self.dropped = False
        self._hub = hub
        self._loop = loop
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._backlog: deque[MessageRecord] = deque()
        self._seen: set[str] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    def prime(self, backlog: Iterable[MessageRecord]) -> None:
        """Queue historical messages ahead of the live tail.

        Live deliveries of a primed message are skipped, so the seam between
        history and tail carries no duplicates.
        """
        for message in backlog:
            self._backlog.append(message)
            self._seen.add(message.id)

    def _offer(self, message: MessageRecord) -> None:
        # Runs on the subscription's loop.
        if self._closed:
            return
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped = True
            logger.warning(
                "Dropping slow subscriber on inbox %s (queue size %d)",
                self.inbox_id,
                self._queue.maxsize,
            )
            self._shutdown()

    def _shutdown(self) -> None:
        self._hub._discard(self)
        if self._closed:
            return
        self._closed = True
        with suppress(asyncio.QueueFull):
            self._queue.put_nowait(_CLOSED)

    def close(self) -> None:
        """End the stream and release the subscription; safe from any thread."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._shutdown()
            return
        try:
            self._loop.call_soon_threadsafe(self._shutdown)
        except RuntimeError:
            # Loop already closed; nobody is left to consume the queue.
            self._closed = True
            self._hub._discard(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> MessageRecord:
        while True:
            if self._backlog:
                return self._backlog.popleft()
            if self._closed and self._queue.empty():
                raise StopAsyncIteration
            item = await self._queue.get()
            if item is _CLOSED:
                raise StopAsyncIteration
            item = cast(MessageRecord, item)
            if item.id in self._seen:
                self._seen.discard(item.id)
                continue
            return item

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class FanoutHub:
    """Publish/subscribe registry keyed by inbox id."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscribers: dict[str, set[Subscription]] = {}
        self._lock = Lock()

    def subscribe(self, inbox_id: str) -> Subscription:
        """Register a subscription on the running event loop."""
        loop = asyncio.get_running_loop()
        subscription = Subscription(self, inbox_id, loop, self.queue_size)
        with self._lock:
            self._subscribers.setdefault(inbox_id, set()).add(subscription)
        logger.debug("Subscriber attached to inbox %s", inbox_id)
        return subscription

    def _discard(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.inbox_id)
            if subscribers is None:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.inbox_id]
        logger.debug("Subscriber detached from inbox %s", subscription.inbox_id)

    def publish(self, inbox_id: str, message: MessageRecord) -> int:
        """Schedule delivery of `message` to every subscriber of `inbox_id`.

        Returns:
            Number of subscribers delivery was scheduled for
        """
        with self._lock:
            targets = list(self._subscribers.get(inbox_id, ()))

        scheduled = 0
        for subscription in targets:
            try:
                subscription._loop.call_soon_threadsafe(subscription._offer, message)
                scheduled += 1
            except RuntimeError:
                # Loop is closed; the subscriber died without unsubscribing.
                logger.warning("Removing dead subscriber on inbox %s", inbox_id)
                self._discard(subscription)
        return scheduled

    def close_inbox(self, inbox_id: str) -> None:
        """End every subscription of an inbox, e.g. after it was deleted."""
        with self._lock:
            targets = list(self._subscribers.get(inbox_id, ()))
        for subscription in targets:
            subscription.close()

    def close(self) -> None:
        """End every subscription on every inbox."""
        with self._lock:
            targets = [sub for subs in self._subscribers.values() for sub in subs]
        for subscription in targets:
            subscription.close()

    def subscriber_count(self, inbox_id: str | None = None) -> int:
        """Return active subscribers for one inbox, or for all inboxes."""
        with self._lock:
            if inbox_id is not None:
                return len(self._subscribers.get(inbox_id, ()))
            return sum(len(subs) for subs in self._subscribers.values())
