"""Last-write-wins bookkeeping for superseded filter requests.

Each caller channel (a browser tab, a session) tags its requests with an
increasing generation number. A computation holds a token and checks it
between stages; once a newer generation has been seen on the same channel
the older result is dropped instead of overwriting the newer one.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Dict, Optional


class StaleRequestError(RuntimeError):
    def __init__(self, channel: str, generation: int, latest: int):
        super().__init__(f"request generation {generation} on channel {channel!r} superseded by {latest}")
        self.channel = channel
        self.generation = generation
        self.latest = latest


class GenerationRegistry:
    def __init__(self) -> None:
        self._latest: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._auto = itertools.count(1)

    def begin(self, channel: Optional[str], generation: Optional[int] = None) -> "GenerationToken":
        if not channel:
            return GenerationToken(registry=None, channel="", generation=0)
        with self._lock:
            if generation is None:
                generation = max(next(self._auto), self._latest.get(channel, 0) + 1)
            if generation > self._latest.get(channel, 0):
                self._latest[channel] = generation
        return GenerationToken(registry=self, channel=channel, generation=generation)

    def latest(self, channel: str) -> int:
        with self._lock:
            return self._latest.get(channel, 0)

    def forget(self, channel: str) -> None:
        with self._lock:
            self._latest.pop(channel, None)


@dataclass(frozen=True)
class GenerationToken:
    registry: Optional[GenerationRegistry]
    channel: str
    generation: int

    def is_current(self) -> bool:
        if self.registry is None:
            return True
        return self.generation >= self.registry.latest(self.channel)

    def raise_if_stale(self) -> None:
        if not self.is_current():
            raise StaleRequestError(self.channel, self.generation, self.registry.latest(self.channel))  # type: ignore[union-attr]
