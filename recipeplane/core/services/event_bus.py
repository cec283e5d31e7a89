"""
EventBus — thread-safe, in-process pub/sub with bounded replay.

Recipe executions run on background workers; the bus is how their
progress reaches the outside world. The execution service publishes
lifecycle events and SSE clients (``GET /api/events``) subscribe.

A reconnecting client that sends ``Last-Event-Id`` gets the events it
missed replayed from a ring buffer. A client that was away longer than
the buffer covers gets a ``state:snapshot`` with the latest execution
event of every recipe instead.

Thread safety
─────────────
- ``_lock`` guards ``_seq``, ``_buffer``, ``_subscribers`` and ``_latest``.
- Each subscriber owns a bounded ``queue.Queue``; a subscriber whose
  queue fills up is dropped.

Event shape (v1)::

    {
        "v": 1,
        "ts": 1739648400.123,
        "seq": 47,
        "type": "step:applied",     # <domain>:<action>
        "key": "enable-foo",        # recipe id
        "data": { ... },
    }
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from typing import Any, Generator

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1


class EventBus:
    """In-process pub/sub with a bounded replay buffer.

    Args:
        buffer_size: Events kept for replay. Older events are discarded.
        subscriber_queue_size: Backlog allowed per subscriber before it
            is dropped.
    """

    def __init__(
        self,
        *,
        buffer_size: int = 500,
        subscriber_queue_size: int = 200,
    ) -> None:
        self._lock = threading.Lock()
        self._seq: int = 0
        self._buffer: deque[dict] = deque(maxlen=buffer_size)
        self._subscribers: list[queue.Queue[dict]] = []
        self._subscriber_queue_size = subscriber_queue_size
        self._instance_id: str = time.strftime("%Y-%m-%dT%H:%M:%S")
        self._latest: dict[str, dict] = {}  # recipe id → latest execution:* event

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def seq(self) -> int:
        with self._lock:
            return self._seq

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ── Publishing ──────────────────────────────────────────────

    def publish(
        self,
        event_type: str,
        *,
        key: str = "",
        data: dict[str, Any] | None = None,
        **kw: Any,
    ) -> dict:
        """Broadcast an event to every subscriber.

        Args:
            event_type: ``<domain>:<action>``, e.g. ``execution:started``.
            key: Recipe id (empty for system events).
            data: Event payload.
            **kw: Extra top-level fields (``error``, ``duration_s``).

        Returns:
            The event dict with its ``seq`` assigned.
        """
        with self._lock:
            self._seq += 1
            event: dict[str, Any] = {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": key,
                "data": data or {},
                **kw,
            }
            self._buffer.append(event)

            if event_type.startswith("execution:") and key:
                self._latest[key] = event

            dead: list[queue.Queue[dict]] = []
            for q in self._subscribers:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead.append(q)
            for q in dead:
                self._subscribers.remove(q)
                logger.info("Dropped unresponsive subscriber (queue full)")

        if event_type != "sys:heartbeat":
            logger.debug("event %s key=%s", event_type, key or "-")

        return event

    # ── Subscribing ─────────────────────────────────────────────

    def subscribe(
        self,
        *,
        since: int = 0,
        heartbeat_interval: float = 30.0,
    ) -> Generator[dict, None, None]:
        """Yield events for one client, blocking between events.

        The first event is always ``sys:ready``. It is followed by
        either the replay of every buffered event with ``seq > since``
        or, when ``since`` is 0 or already evicted, a ``state:snapshot``.

        Args:
            since: Last sequence number the client has seen.
            heartbeat_interval: Idle seconds between ``sys:heartbeat`` events.
        """
        q: queue.Queue[dict] = queue.Queue(maxsize=self._subscriber_queue_size)
        need_snapshot = True

        with self._lock:
            if since > 0 and self._buffer and since >= self._buffer[0]["seq"]:
                missed = [e for e in self._buffer if e["seq"] > since]
                if len(missed) <= self._subscriber_queue_size:
                    need_snapshot = False
                    for event in missed:
                        q.put_nowait(event)
            self._subscribers.append(q)
            count = len(self._subscribers)

        logger.info(
            "Event subscriber connected (since=%d, snapshot=%s, subscribers=%d)",
            since, need_snapshot, count,
        )

        try:
            yield self._make_private_event(
                "sys:ready", {"instance_id": self._instance_id},
            )
            if need_snapshot:
                yield self._make_private_event("state:snapshot", self.snapshot())

            while True:
                try:
                    yield q.get(timeout=heartbeat_interval)
                except queue.Empty:
                    yield self.publish("sys:heartbeat")
        finally:
            with self._lock:
                if q in self._subscribers:
                    self._subscribers.remove(q)
            logger.info("Event subscriber disconnected")

    # ── Snapshot ────────────────────────────────────────────────

    def snapshot(self) -> dict[str, dict]:
        """Latest execution event per recipe id."""
        with self._lock:
            return {key: dict(event) for key, event in self._latest.items()}

    def recent(self, n: int = 50) -> list[dict]:
        """The last ``n`` buffered events, oldest first."""
        with self._lock:
            return list(self._buffer)[-n:]

    def _make_private_event(self, event_type: str, data: dict) -> dict:
        """An event for the connecting client only (not buffered or broadcast)."""
        with self._lock:
            self._seq += 1
            return {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": "",
                "data": data,
            }
