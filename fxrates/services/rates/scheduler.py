from __future__ import annotations

"""Periodic rate refresh.

Runs ExchangeRateService.refresh_rates on a fixed interval as an asyncio task
owned by the application lifespan. The refresh itself is blocking (HTTP +
sqlite) so each run is pushed to a worker thread.
"""
import asyncio
import logging
from typing import Optional, TYPE_CHECKING

from fxrates.core.logging import job_context

if TYPE_CHECKING:  # pragma: no cover
    from fxrates.services.rate_service import ExchangeRateService, RefreshOutcome

logger = logging.getLogger("fxrates.scheduler")


class RefreshScheduler:
    def __init__(
        self,
        service: "ExchangeRateService",
        interval_seconds: float,
        run_on_start: bool = True,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._service = service
        self._interval = interval_seconds
        self._run_on_start = run_on_start
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.last_outcome: Optional["RefreshOutcome"] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name="rate-refresh"
        )
        logger.info("refresh scheduler started (every %ss)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("refresh scheduler stopped")

    async def run_once(self) -> "RefreshOutcome":
        with job_context("scheduled"):
            outcome = await asyncio.to_thread(self._service.refresh_rates)
        self.runs += 1
        self.last_outcome = outcome
        return outcome

    async def _loop(self) -> None:
        if not self._run_on_start:
            await asyncio.sleep(self._interval)
        while True:
            try:
                await self.run_once()
            except Exception:
                # keep ticking; the next run starts from scratch
                logger.exception("scheduled refresh crashed")
            await asyncio.sleep(self._interval)
