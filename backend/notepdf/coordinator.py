from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .logging_utils import get_logger
from .pdf_export import GenerationSuperseded

log = get_logger(__name__)

T = TypeVar("T")


class GenerationCoordinator:
    """One pass per document at a time; the newest request wins.

    Every request gets a token. A pass checks its token after each
    suspension point and is abandoned once a newer request for the same
    document has arrived.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def begin(self, key: str) -> int:
        token = next(self._counter)
        self._latest[key] = token
        return token

    def is_current(self, key: str, token: int) -> bool:
        return self._latest.get(key) == token

    def checkpoint(self, key: str, token: int) -> Callable[[], None]:
        def check() -> None:
            if not self.is_current(key, token):
                log.info("Generation %s for %r superseded by %s", token, key, self._latest.get(key))
                raise GenerationSuperseded(f"Generation for {key!r} was superseded by a newer request.")

        return check

    async def run(self, key: str, factory: Callable[[Callable[[], None]], Awaitable[T]]) -> T:
        token = self.begin(key)
        lock = self._locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                check = self.checkpoint(key, token)
                check()
                return await factory(check)
        finally:
            self._release(key, token)

    def _release(self, key: str, token: int) -> None:
        # Only the latest request clears the entry; older ones leave it for the newer waiter.
        if self.is_current(key, token) and not self._locks[key].locked():
            del self._latest[key]
            del self._locks[key]
