"""Cursor-driven pagination with human-like pacing.

A :class:`Paginator` knows nothing about the site: it is handed a function
that fetches one page for a cursor value, and a :class:`CursorPolicy` that
derives the next cursor from what that page returned.
"""

from __future__ import annotations

import logging
import math
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger("hbcrawler.pagination")

NO_UPPER_BOUND = 0xFFFFFFFF


def compute_delay(gap: int, accuracy: float, rand: Callable[[], float] = random.random) -> int:
    """Milliseconds to wait: ``gap`` plus up to ``gap * (1 - accuracy)`` of jitter."""
    return math.floor(gap + gap * (1 - accuracy) * rand())


class Throttle:
    """Sleeps a jittered gap between requests.  ``gap=0`` disables it."""

    def __init__(
        self,
        gap: int = 0,
        accuracy: float = 1.0,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.gap = gap
        self.accuracy = accuracy
        self._sleep = sleep
        self._rand = rand

    def wait(self) -> int:
        if not self.gap:
            return 0
        ms = compute_delay(self.gap, self.accuracy, self._rand)
        logger.debug("Sleeping %d ms", ms)
        self._sleep(ms / 1000)
        return ms


@dataclass(frozen=True)
class Page(Generic[T]):
    """One fetched page.

    ``exhausted`` is set by the fetcher when the response itself says there is
    nothing (more) to list; ``total`` is the upstream item count, if known.
    """
    items: list[T]
    cursor: int
    exhausted: bool = False
    total: int | None = None


# ── cursor policies ──────────────────────────────────────────────


@dataclass(frozen=True)
class CursorPolicy(ABC, Generic[T]):
    start: int

    @abstractmethod
    def advance(self, cursor: int, items: list[T]) -> int:
        ...


@dataclass(frozen=True)
class DescendingCursor(CursorPolicy[T]):
    """``max = min(key)`` over everything seen; for newest-first listings."""
    key: Callable[[T], int]

    def advance(self, cursor: int, items: list[T]) -> int:
        return min([cursor, *(self.key(i) for i in items)])


@dataclass(frozen=True)
class AscendingCursor(CursorPolicy[T]):
    """``max = max(key)`` over everything seen."""
    key: Callable[[T], int]

    def advance(self, cursor: int, items: list[T]) -> int:
        return max([cursor, *(self.key(i) for i in items)])


@dataclass(frozen=True)
class PageNumberCursor(CursorPolicy[T]):
    start: int = 1

    def advance(self, cursor: int, items: list[T]) -> int:
        return cursor + 1


# ── paginator ────────────────────────────────────────────────────


class Paginator(Generic[T]):
    """Walk a result stream page by page.

    Stops when a page is empty or ``exhausted``, when a page comes back
    shorter than ``page_size``, when ``target`` items (or the page's
    ``total``) have been seen, or when the cursor fails to move.  Errors
    raised by ``fetch`` propagate and end the walk.
    """

    def __init__(
        self,
        fetch: Callable[[int], Page[T]],
        cursor: CursorPolicy[T],
        *,
        page_size: int | None = None,
        target: int | None = None,
        throttle: Throttle | None = None,
        name: str = "stream",
    ) -> None:
        self.fetch = fetch
        self.cursor = cursor
        self.page_size = page_size
        self.target = target
        self.throttle = throttle or Throttle()
        self.name = name
        self.pages_fetched = 0

    def pages(self) -> Iterator[Page[T]]:
        cursor = self.cursor.start
        seen = 0
        while True:
            if self.pages_fetched:
                self.throttle.wait()
            page = self.fetch(cursor)
            self.pages_fetched += 1
            count = len(page.items)
            seen += count
            logger.debug("%s: page %d at cursor %d -> %d items", self.name, self.pages_fetched, cursor, count)

            if count:
                yield page
            if not count or page.exhausted:
                return
            if self.page_size is not None and count < self.page_size:
                return
            if self.target is not None and seen >= self.target:
                return
            if page.total is not None and seen >= page.total:
                return

            nxt = self.cursor.advance(cursor, page.items)
            if nxt == cursor:
                logger.warning("%s: cursor stuck at %d, stopping", self.name, cursor)
                return
            cursor = nxt

    def collect(self) -> list[T]:
        items: list[T] = []
        for page in self.pages():
            items.extend(page.items)
        return items
