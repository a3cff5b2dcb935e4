"""
In-process periodic jobs on the app's event loop.

PeriodicTask runs a job once after ``initial_delay`` seconds and then every
``interval`` seconds until stopped. A failing iteration is logged and the
schedule carries on. Started and stopped by the FastAPI lifespan.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from shared.logging import get_logger

log = get_logger(__name__)

Job = Callable[[], Union[Awaitable[Any], Any]]


class PeriodicTask:
    def __init__(
        self,
        name: str,
        job: Job,
        *,
        interval: float,
        initial_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self._job = job
        self.interval = interval
        self.initial_delay = interval if initial_delay is None else initial_delay
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.iterations = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        log.info(
            "periodic_task_started",
            task=self.name,
            initial_delay=self.initial_delay,
            interval=self.interval,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("periodic_task_stopped", task=self.name)

    async def run_once(self) -> Any:
        self.iterations += 1
        outcome = self._job()
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    async def _loop(self) -> None:
        await self._sleep(self.initial_delay)
        while True:
            try:
                await self.run_once()
            except Exception as e:
                log.error(
                    "periodic_task_failed",
                    task=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            await self._sleep(self.interval)
