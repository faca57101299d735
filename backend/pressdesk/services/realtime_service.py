# Overview: In-process change broadcaster behind the gateway push channel.

"""
Realtime change fan-out.

Every committed gateway write publishes one ChangeEvent. Each SSE client
holds a Subscription with a bounded queue filtered to the tables it asked
for. The event only says "something in this table changed"; subscribers
re-read the table themselves.

A subscriber that stops draining its queue loses events past
MAX_PENDING_EVENTS instead of blocking writers. Since every event triggers
a full re-read, one delivered event per table is enough to converge.
"""

from __future__ import annotations

import json
import queue
import threading
from dataclasses import dataclass, field
from typing import Iterable, Iterator


MAX_PENDING_EVENTS = 256
CHANGE_TYPES = ("INSERT", "UPDATE", "DELETE")


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    type: str

    def to_sse(self) -> str:
        return f"event: change\ndata: {json.dumps({'table': self.table, 'type': self.type})}\n\n"


@dataclass(eq=False)
class Subscription:
    tables: frozenset[str]
    events: "queue.Queue[ChangeEvent]" = field(default_factory=lambda: queue.Queue(maxsize=MAX_PENDING_EVENTS))
    dropped: int = 0

    def wants(self, table: str) -> bool:
        return not self.tables or table in self.tables

    def offer(self, event: ChangeEvent) -> None:
        try:
            self.events.put_nowait(event)
        except queue.Full:
            self.dropped += 1

    def next_event(self, timeout: float) -> ChangeEvent | None:
        try:
            return self.events.get(timeout=timeout)
        except queue.Empty:
            return None


class ChangeBroadcaster:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: set[Subscription] = set()

    def subscribe(self, tables: Iterable[str] = ()) -> Subscription:
        sub = Subscription(tables=frozenset(t for t in tables if t))
        with self._lock:
            self._subscriptions.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(sub)

    def publish(self, table: str, change_type: str) -> int:
        """Queue an event for every interested subscriber. Returns how many got it."""
        event = ChangeEvent(table=table, type=change_type)
        with self._lock:
            targets = [s for s in self._subscriptions if s.wants(table)]
        for sub in targets:
            sub.offer(event)
        return len(targets)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def stream(self, sub: Subscription, *, keepalive_seconds: float) -> Iterator[str]:
        """
        Yield SSE frames for a subscription until the client goes away.

        Flask closes the generator on disconnect; the finally block is what
        removes the subscription.
        """
        try:
            yield ": connected\n\n"
            while True:
                event = sub.next_event(timeout=keepalive_seconds)
                if event is None:
                    yield ": keep-alive\n\n"
                    continue
                yield event.to_sse()
        finally:
            self.unsubscribe(sub)


broadcaster = ChangeBroadcaster()
