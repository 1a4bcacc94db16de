from __future__ import annotations

import asyncio
import copy
import time
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import StoreUnavailable


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ADMIN_KEY: str = "change-me"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    CORS_ORIGIN_REGEX: Optional[str] = None
    CLEAR_RESETS_REVEAL: bool = False
    MIN_PASSWORD_LENGTH: int = 6
    EVENT_LOG_LIMIT: int = 500
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    QUESTION_TEMPERATURE: float = 0.8
    NOTE_TEMPERATURE: float = 0.3
    AZURE_STORAGE_CONNECTION_STRING: Optional[str] = None
    AZURE_STORAGE_CONTAINER: str = "quiz-notes"
    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


_CLOSED = object()


class Subscription:
    """Stream of full snapshots for one path.

    Iterating yields the current value first and then every changed value.
    Once cancelled the stream is exhausted and cannot be restarted.
    """

    def __init__(self, path: str, on_cancel: Optional[Callable[["Subscription"], None]] = None):
        self.path = path
        self._on_cancel = on_cancel
        self._queue: asyncio.Queue = asyncio.Queue()
        self._cancelled = False
        self._last: Any = _CLOSED

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def deliver(self, value: Any) -> None:
        if self._cancelled or value == self._last:
            return
        self._last = copy.deepcopy(value)
        self._queue.put_nowait(copy.deepcopy(value))

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._cancelled and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


def split_path(path: str) -> List[str]:
    parts = [p for p in path.strip("/").split("/") if p]
    for part in parts:
        if any(ch in part for ch in ".#$[]"):
            raise ValueError(f"Invalid path segment: {part!r}")
    return parts


def _overlaps(a: List[str], b: List[str]) -> bool:
    shortest = min(len(a), len(b))
    return a[:shortest] == b[:shortest]


class InMemoryRealtimeStore:
    """Path-addressed JSON tree with push subscriptions."""

    def __init__(self):
        self._root: Dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._subscriptions: List[Subscription] = []
        self._closed = False
        self._last_ts = 0
        self._push_seq = 0

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreUnavailable("Realtime store is not available")

    def _read(self, parts: List[str]) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _set(self, parts: List[str], value: Any) -> None:
        if not parts:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        if value is None:
            self._remove(parts)
            return
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = copy.deepcopy(value)

    def _remove(self, parts: List[str]) -> None:
        trail = []
        node: Any = self._root
        for part in parts[:-1]:
            if not isinstance(node, dict) or part not in node:
                return
            trail.append((node, part))
            node = node[part]
        if isinstance(node, dict):
            node.pop(parts[-1], None)
        # empty parents disappear, as they would in the hosted store
        for parent, key in reversed(trail):
            if parent[key] == {}:
                del parent[key]
            else:
                break

    def _notify(self, parts: List[str]) -> None:
        for sub in list(self._subscriptions):
            sub_parts = split_path(sub.path)
            if _overlaps(sub_parts, parts):
                sub.deliver(self._read(sub_parts))

    async def get(self, path: str) -> Any:
        self._ensure_open()
        parts = split_path(path)
        async with self._lock:
            return copy.deepcopy(self._read(parts))

    async def write(self, path: str, value: Any) -> None:
        self._ensure_open()
        parts = split_path(path)
        async with self._lock:
            self._set(parts, value)
            self._notify(parts)

    async def update(self, path: str, children: Dict[str, Any]) -> None:
        self._ensure_open()
        parts = split_path(path)
        async with self._lock:
            for key, value in children.items():
                self._set(parts + split_path(key), value)
            self._notify(parts)

    async def push(self, path: str, value: Any) -> str:
        self._ensure_open()
        parts = split_path(path)
        async with self._lock:
            self._push_seq += 1
            key = f"{int(time.time() * 1000):013d}{self._push_seq:06d}"
            self._set(parts + [key], value)
            self._notify(parts + [key])
        return key

    async def delete(self, path: str) -> None:
        await self.write(path, None)

    def subscribe(self, path: str) -> Subscription:
        self._ensure_open()
        parts = split_path(path)
        sub = Subscription(path, on_cancel=self._unsubscribe)
        self._subscriptions.append(sub)
        sub.deliver(copy.deepcopy(self._read(parts)))
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def server_timestamp(self) -> int:
        """Epoch milliseconds, strictly increasing for this store."""
        now = int(time.time() * 1000)
        self._last_ts = max(now, self._last_ts + 1)
        return self._last_ts

    def close(self) -> None:
        self._closed = True
        for sub in list(self._subscriptions):
            sub.cancel()
