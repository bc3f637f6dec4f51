# app/workers/distribution_worker.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from app.distribution import eligibility, policy
from app.distribution.committer import SOURCE_AUTO, ClaimCommitter, ClaimOutcome
from app.distribution.config import DistributionConfigChannel
from app.distribution.limits import CapacityRegistry
from app.events.bus import EventBus, ServerEvent
from services.metrics import increment_distribution_cycle


logger = logging.getLogger("payoutdist.scheduler")

STATE_IDLE = "idle"
STATE_RUNNING = "running"


@dataclass(frozen=True)
class CycleReport:
    traders: int = 0
    payouts: int = 0
    planned: int = 0
    applied: int = 0
    not_eligible: int = 0
    failed: int = 0
    skipped: int = 0
    interrupted: bool = False


def next_deadline(last: float, interval: float, now: float) -> float:
    """
    Next tick after `last`. Ticks that were missed while a cycle ran long are
    skipped rather than replayed back to back.
    """
    nxt = last + interval
    if nxt <= now:
        missed = int((now - last) // interval)
        nxt = last + (missed + 1) * interval
    return nxt


class AutoDistributionScheduler:
    """
    Background thread that periodically distributes unassigned payouts.

    Owns the rotation cursor. Reconfigures its timer whenever the config
    channel changes; a cycle already in flight is never interrupted by a
    config change. Only closing the channel ends the loop.
    """

    def __init__(
        self,
        *,
        config: DistributionConfigChannel,
        limits: CapacityRegistry,
        committer: ClaimCommitter,
        events: EventBus,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._limits = limits
        self._committer = committer
        self._events = events
        self._clock = clock

        self._cursor = 0
        self._cursor_lock = threading.Lock()

        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state = STATE_IDLE

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def cursor(self) -> int:
        with self._cursor_lock:
            return self._cursor

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, name="auto-distribution", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Close the config channel and wait for the loop to exit. An in-flight
        cycle finishes the pairing it is committing, then stops.
        """
        self._stopping.set()
        self._config.close()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        stopped = not thread.is_alive()
        if not stopped:
            logger.warning("Auto distribution thread did not stop within %ss", timeout)
        return stopped

    # ------------------------------------------------------------------
    # loop
    # ------------------------------------------------------------------

    def _run(self) -> None:
        snap = self._config.snapshot()
        config, version = snap.config, snap.version
        next_tick = self._clock()
        logger.info(
            "Auto distribution worker started: enabled=%s, interval=%ss",
            config.enabled,
            config.interval_seconds,
        )

        while True:
            timeout = max(0.0, next_tick - self._clock())
            snap = self._config.wait_for_change(version, timeout)
            if snap.closed:
                break

            if snap.version != version:
                config, version = snap.config, snap.version
                next_tick = self._clock()
                logger.info(
                    "Updated auto distribution config: enabled=%s, interval=%ss",
                    config.enabled,
                    config.interval_seconds,
                )
                continue

            now = self._clock()
            if now < next_tick:
                continue

            if config.enabled:
                self._run_cycle_safely()

            next_tick = next_deadline(next_tick, config.interval_seconds, self._clock())

        logger.info("Auto distribution worker stopped")

    def _run_cycle_safely(self) -> None:
        self._state = STATE_RUNNING
        try:
            self.run_cycle()
            increment_distribution_cycle("ok")
        except Exception:
            increment_distribution_cycle("error")
            logger.exception("Distribution error")
        finally:
            self._state = STATE_IDLE

    # ------------------------------------------------------------------
    # one cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleReport:
        traders = eligibility.list_eligible_traders()
        if not traders:
            logger.info("No eligible traders available. Skipping distribution.")
            return CycleReport()

        payouts = eligibility.list_unassigned_payouts()
        if not payouts:
            logger.info("No unassigned payouts to distribute.")
            return CycleReport(traders=len(traders))

        limits = self._limits.snapshot()
        with self._cursor_lock:
            plan = policy.assign(traders, payouts, limits, self._cursor)
            self._cursor = plan.cursor

        for payout in plan.skipped:
            logger.info(
                "Skipped payout %s (amount %.2f) - no trader accepts this amount",
                payout.id,
                payout.amount,
            )

        if not plan.pairings:
            logger.info("No assignments created in this cycle.")
            return CycleReport(traders=len(traders), payouts=len(payouts), skipped=len(plan.skipped))

        applied = not_eligible = failed = 0
        interrupted = False
        for pairing in plan.pairings:
            if self._stopping.is_set():
                interrupted = True
                logger.info("Shutdown requested; leaving remaining pairings for the next run")
                break

            payout, trader = pairing.payout, pairing.trader
            try:
                outcome = self._committer.commit(payout.id, trader.id, source=SOURCE_AUTO, notify=False)
            except Exception:
                failed += 1
                logger.exception("Failed to assign payout %s to trader %s", payout.id, trader.id)
                continue

            if outcome is ClaimOutcome.APPLIED:
                applied += 1
                logger.info(
                    "Assigned payout %s (numericId %s) to trader %s (numericId %s)",
                    payout.id,
                    payout.numeric_id,
                    trader.id,
                    trader.numeric_id,
                )
            else:
                not_eligible += 1

        if applied:
            self._events.publish(ServerEvent.payouts_updated(SOURCE_AUTO))
            logger.info("Distribution cycle completed with %s assignments.", applied)
        else:
            logger.info("Distribution cycle completed without changes.")

        return CycleReport(
            traders=len(traders),
            payouts=len(payouts),
            planned=len(plan.pairings),
            applied=applied,
            not_eligible=not_eligible,
            failed=failed,
            skipped=len(plan.skipped),
            interrupted=interrupted,
        )
