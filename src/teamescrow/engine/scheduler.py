"""Escrow scheduler for Teamescrow.

Guarantees every locked payout eventually leaves escrow, even across
process restarts. Two mechanisms feed the same idempotent
``PayoutService.release_if_locked``:

- An in-process timer per payout, started when the payout is created. It
  only shortens latency and does not survive a restart.
- A periodic sweep that releases every payout still locked
  ``release_delay_seconds`` after creation. Correctness rests on the sweep.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import structlog
from pydantic import BaseModel, Field

from teamescrow.database.models.base import as_utc, utcnow
from teamescrow.database.queries.payouts import list_due_payouts
from teamescrow.engine.context import EngineContext
from teamescrow.engine.payouts import PayoutService

logger = structlog.get_logger(__name__)


class SweepResult(BaseModel):
    """Outcome of one release sweep pass.

    Attributes:
        examined: Due payouts found.
        released: Payouts this pass released.
        skipped: Payouts already settled by someone else.
        failed: Payouts whose release raised.
    """

    examined: int = Field(default=0)
    released: int = Field(default=0)
    skipped: int = Field(default=0)
    failed: int = Field(default=0)


class EscrowScheduler:
    """Runs the release timers and the durable release sweep."""

    def __init__(
        self,
        ctx: EngineContext,
        payouts: PayoutService,
        sweep_interval: int | None = None,
        release_delay: int | None = None,
    ) -> None:
        """Initialize the escrow scheduler.

        Args:
            ctx: Shared engine context.
            payouts: Payout service performing the releases.
            sweep_interval: Seconds between sweeps (default from config).
            release_delay: Seconds a payout stays locked (default from config).
        """
        self.ctx = ctx
        self.payouts = payouts
        self.sweep_interval = (
            sweep_interval
            if sweep_interval is not None
            else ctx.escrow.release_sweep_interval_seconds
        )
        self.release_delay = (
            release_delay if release_delay is not None else ctx.escrow.release_delay_seconds
        )
        self._running = False
        self._sweep_task: asyncio.Task[None] | None = None
        self._timers: dict[uuid.UUID, asyncio.Task[None]] = {}
        self._logger = logger.bind(component="EscrowScheduler")

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    async def start(self) -> None:
        """Start the periodic sweep. No-op if already running."""
        if self._running:
            self._logger.warning("escrow_scheduler_already_running")
            return

        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        self._logger.info(
            "escrow_scheduler_started",
            sweep_interval=self.sweep_interval,
            release_delay=self.release_delay,
        )

    async def stop(self) -> None:
        """Stop the sweep and drop every pending timer.

        Dropped timers are harmless: the next sweep, in this process or
        another, releases their payouts.
        """
        if not self._running:
            self._logger.warning("escrow_scheduler_not_running")
            return

        self._running = False

        tasks = list(self._timers.values())
        if self._sweep_task is not None:
            tasks.append(self._sweep_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._timers.clear()
        self._sweep_task = None

        self._logger.info("escrow_scheduler_stopped")

    def schedule_release(self, payout_id: uuid.UUID, created_at: datetime | None = None) -> None:
        """Arm a best-effort timer releasing ``payout_id`` when its delay elapses.

        Does nothing unless the scheduler is running.
        """
        if not self._running:
            return
        if payout_id in self._timers:
            return

        delay = float(self.release_delay)
        if created_at is not None:
            elapsed = (utcnow() - as_utc(created_at)).total_seconds()
            delay = max(0.0, delay - elapsed)

        task = asyncio.create_task(self._release_later(payout_id, delay))
        self._timers[payout_id] = task
        task.add_done_callback(lambda _t: self._timers.pop(payout_id, None))
        self._logger.debug("payout_release_scheduled", payout_id=str(payout_id), delay=delay)

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Release every payout locked for at least the release delay.

        A failure on one payout is logged and the pass moves on.

        Args:
            now: Reference time (defaults to the current UTC time).

        Returns:
            SweepResult with per-outcome counts.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=self.release_delay)

        async with self.ctx.session_factory() as session:
            due = await list_due_payouts(session, cutoff)

        result = SweepResult(examined=len(due))
        for payout_id in due:
            try:
                if await self.payouts.release_if_locked(payout_id, trigger="sweep"):
                    result.released += 1
                else:
                    result.skipped += 1
            except Exception as e:
                result.failed += 1
                self._logger.error(
                    "payout_release_failed",
                    payout_id=str(payout_id),
                    error=str(e),
                    exc_info=True,
                )

        if result.examined:
            self._logger.info("release_sweep_completed", **result.model_dump())
        return result

    async def _release_later(self, payout_id: uuid.UUID, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            await self.payouts.release_if_locked(payout_id, trigger="timer")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # The sweep retries this payout
            self._logger.error(
                "payout_timer_failed",
                payout_id=str(payout_id),
                error=str(e),
                exc_info=True,
            )

    async def _sweep_loop(self) -> None:
        """Background loop running ``sweep`` every ``sweep_interval`` seconds."""
        self._logger.info("release_sweep_loop_started")

        while self._running:
            try:
                await self.sweep()
                await asyncio.sleep(self.sweep_interval)
            except asyncio.CancelledError:
                self._logger.info("release_sweep_loop_cancelled")
                break
            except Exception as e:
                self._logger.error(
                    "release_sweep_loop_error",
                    error=str(e),
                    exc_info=True,
                )
                # Continue sweeping despite errors
                await asyncio.sleep(self.sweep_interval)
