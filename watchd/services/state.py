"""Observable state primitives shared by the session coordinators.

Each coordinator keeps its screen state in a frozen dataclass held by a
StateStore. Mutations go through ``update`` which swaps in a new snapshot
and notifies subscribers, so the presentation layer only ever re-renders
from complete states.
"""

import asyncio
import dataclasses
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Coroutine, Generic, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")
Listener = Callable[[S], None]


class StateStore(Generic[S]):
    """Current state snapshot plus a subscriber list."""

    def __init__(self, initial: S):
        self._state = initial
        self._listeners: list[Listener] = []

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> S:
        new_state = dataclasses.replace(self._state, **changes)
        if new_state == self._state:
            return self._state
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)
        return new_state


class LatestTaskRunner:
    """Runs one refresh at a time; a newer run supersedes the older one.

    A superseded run is cancelled and reports False instead of raising, so
    callers can return silently.
    """

    def __init__(self):
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, coro: Coroutine[Any, Any, None]) -> bool:
        if self._task is not None and not self._task.done():
            self._task.cancel()

        task = asyncio.create_task(coro)
        self._task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._task is task and task.done():
                self._task = None

        if task.cancelled():
            return False
        task.result()
        return True

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None


class BackgroundTasks:
    """Holds strong references to fire-and-forget tasks until they finish."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task failed: {task.exception()!r}")

    async def drain(self) -> None:
        """Wait for every pending task, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


@asynccontextmanager
async def minimum_duration(seconds: float):
    """Stretch the wrapped block to at least ``seconds`` (loading-spinner floor)."""
    started = time.monotonic()
    yield
    remaining = seconds - (time.monotonic() - started)
    if remaining > 0:
        await asyncio.sleep(remaining)
