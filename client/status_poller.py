import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

TERMINAL_STATUSES = frozenset({"active", "paused", "error"})

StatusFetcher = Callable[[], Awaitable[dict[str, Any]]]
# Returning True from the callback stops polling
StatusCallback = Callable[[dict[str, Any]], Optional[bool]]


class CampaignStatusPoller:
    """Polls a campaign record on a fixed interval in a background task.

    Stops on a terminal status, when the callback returns True, or after
    ``max_failures`` consecutive fetch errors. ``close()`` must be called
    when the owning view goes away.
    """

    def __init__(
        self,
        fetch: StatusFetcher,
        on_update: Optional[StatusCallback] = None,
        interval: float = 1.0,
        max_failures: int = 3,
    ):
        self.fetch = fetch
        self.on_update = on_update
        self.interval = interval
        self.max_failures = max_failures
        self.last_status: Optional[dict[str, Any]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("status_polling_cancelled")

    async def _run(self) -> None:
        failures = 0
        while True:
            try:
                status = await self.fetch()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                failures += 1
                logger.warning("status_poll_failed", attempt=failures, error=str(e))
                if failures >= self.max_failures:
                    logger.error("status_polling_stopped", reason="too many failures")
                    return
            else:
                failures = 0
                self.last_status = status
                done = self.on_update(status) if self.on_update else False
                if done or status.get("status") in TERMINAL_STATUSES:
                    logger.debug("status_polling_finished", status=status.get("status"))
                    return
            await asyncio.sleep(self.interval)
