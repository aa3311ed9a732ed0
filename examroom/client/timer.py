import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CountdownTimer:
    """Remaining-seconds counter for the active stage.

    Display only: the server decides whether a submission is on time. At zero
    the expiry callback fires exactly once, whatever the candidate is doing.
    """

    def __init__(
        self,
        on_expire: Callable[[], Any],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._on_expire = on_expire
        self._sleep = sleep
        self.remaining: Optional[int] = None
        self.running = False
        self.expired = False
        self._task: Optional[asyncio.Task] = None

    def start(self, seconds: int) -> None:
        self.remaining = max(int(seconds), 0)
        self.running = True
        self.expired = False
        if self.remaining == 0:
            self._expire()

    def tick(self) -> None:
        if not self.running:
            return
        self.remaining = max(self.remaining - 1, 0)
        if self.remaining == 0:
            self._expire()

    def _expire(self) -> None:
        self.running = False
        if self.expired:
            return
        self.expired = True
        logger.info("Countdown reached zero")
        self._on_expire()

    async def run(self) -> None:
        while self.running:
            await self._sleep(1)
            self.tick()

    def launch(self) -> asyncio.Task:
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self) -> None:
        self.running = False
        if self._task is None or self._task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # stop() may be reached from the timer's own task via the expiry callback
        if self._task is not current:
            self._task.cancel()

    @property
    def display(self) -> str:
        seconds = self.remaining or 0
        return f"{seconds // 60:02d}:{seconds % 60:02d}"
