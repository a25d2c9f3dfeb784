# app/services/notifier.py
"""
Update notifier: process-local fan-out of "something changed, refetch" hints.

Two consumers read the same per-user event log:
- push: at most one live event-stream channel per user, written on record()
- pull: /polling-updates drains events newer than a client watermark

Recording never removes an event; only the bounded queue (oldest first)
and the retention sweep over idle users do that.
Push delivery is an extra low-latency path on top of the log.

State lives in this process only. Running more than one app instance means
clients only hear about writes handled by the instance they are connected
to; swap InMemoryNotifier for a shared pub/sub implementation of
UpdateNotifier to lift that.
"""

from __future__ import annotations

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Deque, Dict, List, Optional

from app.log import get_logger
from config import NOTIFIER_QUEUE_SIZE, NOTIFIER_RETENTION_SECONDS

logger = get_logger(__name__)

# How often record() sweeps idle users' queues
PRUNE_INTERVAL_MS = 60_000

# Event types
TRANSACTION_CREATED = "transaction_created"
TRANSACTION_UPDATED = "transaction_updated"
TRANSACTION_DELETED = "transaction_deleted"
WALLET_UPDATED = "wallet_updated"
SAVINGS_GOAL_UPDATED = "savings_goal_updated"
CONNECTED = "connected"

EVENT_TYPES = frozenset(
    {
        TRANSACTION_CREATED,
        TRANSACTION_UPDATED,
        TRANSACTION_DELETED,
        WALLET_UPDATED,
        SAVINGS_GOAL_UPDATED,
    }
)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class UpdateEvent:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0

    def to_dict(self) -> dict:
        return {"type": self.type, "data": self.payload, "timestamp": self.timestamp}


class ChannelClosed(Exception):
    """Raised when writing to a push channel whose reader is gone."""


class PushChannel:
    """
    Handle onto one open event stream.

    The stream coroutine reads from an asyncio.Queue on its own event loop;
    writers may be on any thread (sync route handlers run in a thread pool),
    so puts are scheduled with call_soon_threadsafe. A None item ends the
    stream.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def send(self, event: UpdateEvent) -> None:
        if self.closed:
            raise ChannelClosed("channel already closed")
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError as exc:
            # event loop shut down underneath us
            self.closed = True
            raise ChannelClosed(str(exc)) from exc

    async def get(self) -> Optional[UpdateEvent]:
        return await self._queue.get()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, None)


class UpdateNotifier(ABC):
    """
    Interface every notifier backend implements.

    Callers (the ledger, wallet and goal services, the push/pull routes) only
    see these four operations.
    """

    @abstractmethod
    def record(self, user_id: int, type: str, payload: Optional[dict] = None) -> UpdateEvent:
        """Append an event for user_id and push it to a live channel, if any."""

    @abstractmethod
    def drain_since(self, user_id: int, watermark: int) -> List[UpdateEvent]:
        """Events with timestamp > watermark, oldest first. Does not consume."""

    @abstractmethod
    def register_push_channel(self, user_id: int, channel: PushChannel) -> None:
        """Attach a live channel; replaces (and closes) any previous one."""

    @abstractmethod
    def unregister_push_channel(self, user_id: int, channel: Optional[PushChannel] = None) -> None:
        """Detach the user's channel (only if it is still `channel`, when given)."""


class InMemoryNotifier(UpdateNotifier):
    """
    Single-process notifier: a bounded deque and one push channel per user.

    A user's queue is dropped once its newest event is older than the
    retention window, so users who stop writing do not hold memory forever.
    """

    def __init__(self, queue_size: int = NOTIFIER_QUEUE_SIZE,
                 retention_seconds: int = NOTIFIER_RETENTION_SECONDS):
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        if retention_seconds < 1:
            raise ValueError("retention_seconds must be at least 1")
        self.queue_size = queue_size
        self.retention_ms = retention_seconds * 1000
        self._lock = threading.Lock()
        self._queues: Dict[int, Deque[UpdateEvent]] = {}
        self._channels: Dict[int, PushChannel] = {}
        self._last_ts = 0
        self._last_prune = now_ms()

    def _next_timestamp(self) -> int:
        # strictly increasing, so a watermark never hides a same-millisecond event
        ts = max(now_ms(), self._last_ts + 1)
        self._last_ts = ts
        return ts

    def record(self, user_id: int, type: str, payload: Optional[dict] = None) -> UpdateEvent:
        if type not in EVENT_TYPES:
            raise ValueError(f"unknown event type: {type!r}")

        with self._lock:
            event = UpdateEvent(type=type, payload=payload or {}, timestamp=self._next_timestamp())

            if event.timestamp - self._last_prune >= PRUNE_INTERVAL_MS:
                self._prune_locked(event.timestamp)

            queue = self._queues.get(user_id)
            if queue is None:
                queue = deque(maxlen=self.queue_size)
                self._queues[user_id] = queue
            queue.append(event)

            channel = self._channels.get(user_id)
            if channel is not None:
                try:
                    channel.send(event)
                except ChannelClosed as exc:
                    del self._channels[user_id]
                    logger.info("push_channel_dropped", user_id=user_id, reason=str(exc))

        logger.debug("update_recorded", user_id=user_id, type=type, timestamp=event.timestamp)
        return event

    def drain_since(self, user_id: int, watermark: int) -> List[UpdateEvent]:
        with self._lock:
            queue = self._queues.get(user_id)
            if not queue:
                return []
            return [e for e in queue if e.timestamp > watermark]

    def prune(self, now: Optional[int] = None) -> int:
        """Drop queues whose newest event is past retention. Returns how many went."""
        with self._lock:
            return self._prune_locked(now_ms() if now is None else now)

    def _prune_locked(self, now: int) -> int:
        cutoff = now - self.retention_ms
        idle = [uid for uid, queue in self._queues.items() if not queue or queue[-1].timestamp < cutoff]
        for uid in idle:
            del self._queues[uid]
        self._last_prune = now
        if idle:
            logger.debug("update_queues_pruned", users=len(idle))
        return len(idle)

    def register_push_channel(self, user_id: int, channel: PushChannel) -> None:
        with self._lock:
            previous = self._channels.get(user_id)
            self._channels[user_id] = channel

        if previous is not None and previous is not channel:
            previous.close()
            logger.info("push_channel_replaced", user_id=user_id)
        logger.info("push_channel_registered", user_id=user_id)

    def unregister_push_channel(self, user_id: int, channel: Optional[PushChannel] = None) -> None:
        with self._lock:
            current = self._channels.get(user_id)
            if current is None:
                return
            if channel is not None and current is not channel:
                # a newer connection took over; leave it alone
                return
            del self._channels[user_id]

        logger.info("push_channel_unregistered", user_id=user_id)

    def has_push_channel(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._channels


@lru_cache()
def get_notifier() -> UpdateNotifier:
    """
    Process-wide notifier (cached).

    Call get_notifier.cache_clear() to start over with an empty one.
    """
    return InMemoryNotifier()
