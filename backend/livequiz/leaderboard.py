from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from .answers import ANSWERS_PATH
from .game import GAME_STATE_PATH
from .models import GameState, ParticipantScore
from .questions import QUESTIONS_PATH, parse_questions
from .scoring import compute_leaderboard, parse_answers

logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[[Any], Awaitable[None]]


class _Feed(Generic[T]):
    """Keeps a derived value in sync with one or more store paths.

    Each subscription is pumped into a single inbox; the consumer task
    rebuilds the value from the latest snapshot of every path.
    """

    paths: tuple = ()

    def __init__(self, store):
        self.store = store
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._snapshots: Dict[str, Any] = {}
        self._subscriptions = []
        self._tasks: List[asyncio.Task] = []
        self._listeners: List[Listener] = []
        self._current: Optional[T] = None

    @property
    def ready(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> Optional[T]:
        return self._current

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        if self._tasks:
            return
        try:
            for path in self.paths:
                self._subscriptions.append(self.store.subscribe(path))
        except Exception:
            self._cancel_subscriptions()
            raise
        for path, sub in zip(self.paths, self._subscriptions):
            self._tasks.append(asyncio.create_task(self._pump(path, sub)))
        self._tasks.append(asyncio.create_task(self._consume()))

    async def stop(self) -> None:
        self._cancel_subscriptions()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

    def _cancel_subscriptions(self) -> None:
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions = []

    async def _pump(self, path: str, sub) -> None:
        async for snapshot in sub:
            await self._inbox.put((path, snapshot))

    async def _consume(self) -> None:
        while True:
            path, snapshot = await self._inbox.get()
            self._snapshots[path] = snapshot
            # drain queued messages so only the newest snapshot per path is used
            while not self._inbox.empty():
                path, snapshot = self._inbox.get_nowait()
                self._snapshots[path] = snapshot
            if len(self._snapshots) < len(self.paths):
                continue
            try:
                value = self.derive(self._snapshots)
            except Exception:
                # keep the last good value; the next snapshot gets a fresh attempt
                logger.exception("%s could not derive a value", type(self).__name__)
                continue
            self._current = value
            for listener in self._listeners:
                try:
                    await listener(value)
                except Exception:
                    logger.exception("%s listener failed", type(self).__name__)

    def derive(self, snapshots: Dict[str, Any]) -> T:
        raise NotImplementedError


class LeaderboardFeed(_Feed[List[ParticipantScore]]):
    paths = (QUESTIONS_PATH, ANSWERS_PATH)

    def derive(self, snapshots: Dict[str, Any]) -> List[ParticipantScore]:
        return compute_leaderboard(
            parse_questions(snapshots[QUESTIONS_PATH]),
            parse_answers(snapshots[ANSWERS_PATH]),
        )


class GameStateFeed(_Feed[GameState]):
    paths = (GAME_STATE_PATH,)

    def derive(self, snapshots: Dict[str, Any]) -> GameState:
        return GameState.from_snapshot(snapshots[GAME_STATE_PATH])
