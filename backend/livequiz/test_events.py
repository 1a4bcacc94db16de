from __future__ import annotations

from unittest import IsolatedAsyncioTestCase

from .db import InMemoryRealtimeStore
from .events import EventStore


class EventStoreTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.events = EventStore(InMemoryRealtimeStore(), limit=3)

    async def test_append_and_list_after(self):
        first = await self.events.append({"type": "a"})
        second = await self.events.append({"type": "b"})

        self.assertEqual(second, first + 1)
        self.assertEqual([e["payload"]["type"] for e in await self.events.list()], ["a", "b"])
        self.assertEqual([e["seq"] for e in await self.events.list(after=first)], [second])

    async def test_log_is_trimmed_to_limit(self):
        for i in range(5):
            await self.events.append({"type": "tick", "i": i})

        events = await self.events.list()

        self.assertEqual([e["payload"]["i"] for e in events], [2, 3, 4])

    async def test_list_respects_limit_argument(self):
        for i in range(3):
            await self.events.append({"i": i})

        self.assertEqual(len(await self.events.list(limit=2)), 2)

    async def test_reset_keeps_sequence_increasing(self):
        seq = await self.events.append({"type": "a"})

        await self.events.reset()

        events = await self.events.list()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["payload"], {"type": "session_reset"})
        self.assertGreater(events[0]["seq"], seq)
