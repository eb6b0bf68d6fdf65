"""
Periodic broker loops

The directory heartbeat and the orphan sweep each run as one BackgroundTask:
an optional initial delay, then the coroutine function on a fixed interval
until stop is requested.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Dict, List, Optional

from dock_broker.infrastructure.logging import get_logger

logger = get_logger(__name__)

TickFunc = Callable[[], Awaitable[object]]


class BackgroundTask:
    """
    One interval loop.

    A failing tick is logged and counted; the loop carries on with the next
    one. Stopping interrupts the wait between ticks, never a running tick.
    """

    def __init__(
        self,
        name: str,
        func: TickFunc,
        interval_seconds: float,
        initial_delay_seconds: float = 0,
    ):
        """
        Args:
            name: Loop name, used in logs and status
            func: Coroutine function called on every tick
            interval_seconds: Pause between the end of a tick and the next one
            initial_delay_seconds: Pause before the first tick
        """
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.ticks = 0
        self.failures = 0
        self._loop_task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Loop already running", task=self.name)
            return
        self._stopping.clear()
        self._loop_task = asyncio.create_task(self._loop(), name=f"loop:{self.name}")
        logger.info("Loop started", task=self.name, interval=self.interval_seconds)

    async def stop(self, grace_seconds: float = 30) -> None:
        """Request stop and wait for an in-progress tick to finish."""
        task = self._loop_task
        if task is None:
            return
        self._loop_task = None
        self._stopping.set()
        if task.done():
            return

        done, _ = await asyncio.wait({task}, timeout=grace_seconds)
        if task in done:
            logger.info("Loop stopped", task=self.name, ticks=self.ticks)
            return
        logger.warning("Loop did not stop within grace period, cancelling", task=self.name)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _pause(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True if stop was requested meanwhile."""
        if seconds <= 0:
            return self._stopping.is_set()
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _tick(self) -> None:
        self.ticks += 1
        try:
            await self.func()
        except Exception as e:
            self.failures += 1
            logger.error("Loop tick failed", task=self.name, error=str(e), exc_info=True)

    async def _loop(self) -> None:
        if await self._pause(self.initial_delay_seconds):
            return
        while not self._stopping.is_set():
            await self._tick()
            if await self._pause(self.interval_seconds):
                return


class BackgroundTaskManager:
    """Registry of the process's interval loops, started and stopped together."""

    def __init__(self):
        self._tasks: List[BackgroundTask] = []
        self._running = False

    def register_task(
        self,
        name: str,
        func: TickFunc,
        interval_seconds: float,
        initial_delay_seconds: float = 0,
    ) -> BackgroundTask:
        task = BackgroundTask(name, func, interval_seconds, initial_delay_seconds)
        self._tasks.append(task)
        logger.debug(
            "Loop registered",
            task=name,
            interval=interval_seconds,
            delay=initial_delay_seconds,
        )
        return task

    async def start_all(self) -> None:
        if self._running:
            return
        self._running = True
        for task in self._tasks:
            await task.start()

    async def stop_all(self) -> None:
        if not self._running:
            return
        self._running = False
        await asyncio.gather(*(task.stop() for task in self._tasks), return_exceptions=True)
        logger.info("All loops stopped", count=len(self._tasks))

    @asynccontextmanager
    async def lifecycle(self):
        """Run every registered loop for the duration of the block."""
        await self.start_all()
        try:
            yield self
        finally:
            await self.stop_all()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def task_count(self) -> int:
        return len(self._tasks)

    def get_task_status(self) -> Dict[str, bool]:
        return {task.name: task.is_running for task in self._tasks}
