"""Fan-out/fan-in primitive for concurrent store operations."""

import asyncio
from collections.abc import Coroutine
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class FanOut(Generic[T]):
    """Runs coroutines concurrently and waits for all of them.

    The first exception raised by any coroutine is kept in an error slot
    and re-raised by :meth:`join` only after every sibling has finished.
    Siblings are never cancelled because one of them failed.

    Example:
        fan_out: FanOut[None] = FanOut()
        for key, value in items:
            fan_out.spawn(store.set(key, value))
        await fan_out.join()
    """

    def __init__(self) -> None:
        self._tasks: list[asyncio.Task[T | None]] = []
        self._first_error: BaseException | None = None

    def spawn(self, coro: Coroutine[Any, Any, T]) -> None:
        """Schedule a coroutine on the running event loop."""
        self._tasks.append(asyncio.ensure_future(self._run(coro)))

    async def _run(self, coro: Coroutine[Any, Any, T]) -> T | None:
        try:
            return await coro
        except Exception as e:
            if self._first_error is None:
                self._first_error = e
            return None

    async def join(self) -> list[T | None]:
        """Wait for every spawned coroutine.

        Returns:
            Results in spawn order. A failed coroutine yields None.

        Raises:
            Exception: The first error raised by a spawned coroutine
        """
        if self._tasks:
            await asyncio.wait(self._tasks)
        if self._first_error is not None:
            raise self._first_error
        return [task.result() for task in self._tasks]

    def __len__(self) -> int:
        return len(self._tasks)
