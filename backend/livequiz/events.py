from __future__ import annotations

import asyncio
from typing import Any, List

from .utils import now_ms

EVENTS_PATH = "events"
COUNTER_PATH = "event_counter"


class EventStore:
    """Persist quiz events so clients can poll via HTTP."""

    def __init__(self, store, limit: int = 500):
        self.store = store
        self.limit = limit
        self._lock = asyncio.Lock()

    async def append(self, payload: dict[str, Any]) -> int:
        """Store a new event and return its sequence number."""

        async with self._lock:
            seq = int(await self.store.get(COUNTER_PATH) or 0) + 1
            await self.store.write(COUNTER_PATH, seq)
            await self.store.write(
                f"{EVENTS_PATH}/{seq}",
                {
                    "seq": seq,
                    "timestamp": now_ms(),
                    "payload": payload,
                },
            )

            stale = seq - self.limit
            if stale > 0:
                # only the newest ``limit`` events are kept for polling clients
                await self.store.delete(f"{EVENTS_PATH}/{stale}")
        return seq

    async def list(self, after: int | None = None, limit: int = 200) -> List[dict[str, Any]]:
        """Return events that occur after the given sequence."""

        raw = await self.store.get(EVENTS_PATH) or {}
        docs = sorted((doc for doc in raw.values() if isinstance(doc, dict)), key=lambda d: d.get("seq", 0))
        if after is not None:
            docs = [doc for doc in docs if doc.get("seq", 0) > after]

        events: List[dict[str, Any]] = []
        for doc in docs[:limit]:
            events.append(
                {
                    "seq": doc["seq"],
                    "timestamp": doc.get("timestamp"),
                    "payload": doc.get("payload", {}),
                }
            )
        return events

    async def reset(self) -> None:
        """Clear stored events and emit a reset marker."""

        await self.store.delete(EVENTS_PATH)

        # Sequence numbers keep increasing across resets so pollers never
        # mistake new events for ones they have already seen.
        await self.append({"type": "session_reset"})
