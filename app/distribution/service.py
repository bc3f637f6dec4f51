# app/distribution/service.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

import psycopg2
from psycopg2.pool import PoolError

from app.callbacks.dispatcher import CallbackDispatcher
from app.callbacks.http import HttpClient
from app.distribution import eligibility
from app.distribution.committer import ClaimCommitter
from app.distribution.config import AutoDistributionConfig, DistributionConfigChannel
from app.distribution.limits import CapacityRegistry
from app.distribution.manual import assign_manually
from app.distribution.models import Trader, UnassignedPayout
from app.events.bus import EventBus, ServerEvent, Subscription
from app.payouts.cancellation import CancellationResult, cancel_payout
from app.workers.distribution_worker import AutoDistributionScheduler
from services.errors import Unavailable
from settings import Settings


logger = logging.getLogger("payoutdist.service")

_STORE_DOWN = (psycopg2.OperationalError, psycopg2.InterfaceError, PoolError)


class PayoutDistributionService:
    """
    Everything the HTTP layer can do, wired to one shared set of in-memory
    state: event bus, capacity registry, config channel and scheduler.
    """

    def __init__(
        self,
        *,
        events: EventBus,
        limits: CapacityRegistry,
        config: DistributionConfigChannel,
        committer: ClaimCommitter,
        dispatcher: CallbackDispatcher,
        scheduler: AutoDistributionScheduler,
        shutdown_timeout_s: float = 30.0,
    ):
        self.events = events
        self.limits = limits
        self.config = config
        self.committer = committer
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self._shutdown_timeout_s = shutdown_timeout_s

    @classmethod
    def from_settings(cls, cfg: Settings, *, http: Optional[HttpClient] = None) -> "PayoutDistributionService":
        events = EventBus(buffer_size=cfg.EVENT_BUFFER_SIZE)
        limits = CapacityRegistry()
        config = DistributionConfigChannel(
            AutoDistributionConfig.build(cfg.AUTO_DISTRIBUTION_ENABLED, cfg.AUTO_DISTRIBUTION_INTERVAL_S)
        )
        committer = ClaimCommitter(events, acceptance_time=cfg.ACCEPTANCE_TIME)
        dispatcher = CallbackDispatcher(
            http or HttpClient(timeout_s=cfg.CALLBACK_TIMEOUT_S),
            response_max_chars=cfg.CALLBACK_RESPONSE_MAX_CHARS,
        )
        scheduler = AutoDistributionScheduler(
            config=config,
            limits=limits,
            committer=committer,
            events=events,
        )
        return cls(
            events=events,
            limits=limits,
            config=config,
            committer=committer,
            dispatcher=dispatcher,
            scheduler=scheduler,
            shutdown_timeout_s=cfg.SCHEDULER_SHUTDOWN_TIMEOUT_S,
        )

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self) -> None:
        self.scheduler.stop(timeout=self._shutdown_timeout_s)
        self.dispatcher.close()

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def list_traders(self) -> list[Trader]:
        try:
            return eligibility.load_traders_with_limits(self.limits)
        except _STORE_DOWN as exc:
            raise Unavailable("Failed to fetch eligible traders") from exc

    def list_unassigned_payouts(self) -> list[UnassignedPayout]:
        try:
            return eligibility.list_unassigned_payouts()
        except _STORE_DOWN as exc:
            raise Unavailable("Failed to fetch unassigned payouts") from exc

    def get_auto_config(self) -> AutoDistributionConfig:
        return self.config.current()

    def subscribe(self) -> Subscription:
        return self.events.subscribe()

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def assign(self, payout_id: str, trader_id: Optional[str]) -> None:
        try:
            assign_manually(self.committer, payout_id, trader_id)
        except _STORE_DOWN as exc:
            raise Unavailable("Failed to assign payout") from exc

    def cancel(
        self,
        payout_id: str,
        reason: Optional[str] = None,
        reason_code: Optional[str] = None,
    ) -> CancellationResult:
        try:
            return cancel_payout(
                payout_id,
                reason=reason,
                reason_code=reason_code,
                dispatcher=self.dispatcher,
                events=self.events,
            )
        except _STORE_DOWN as exc:
            raise Unavailable("Failed to cancel payout") from exc

    def set_auto_config(self, enabled: bool, interval_seconds: int) -> AutoDistributionConfig:
        updated = self.config.update(enabled, interval_seconds)
        logger.info(
            "Auto distribution %s with interval %s seconds",
            "enabled" if updated.enabled else "disabled",
            updated.interval_seconds,
        )
        self.events.publish(ServerEvent.settings_updated())
        return updated

    def set_trader_limit(self, trader_id: str, max_amount: Any) -> Optional[Decimal]:
        sanitized = self.limits.set_limit(trader_id, max_amount)
        self.events.publish(ServerEvent.limits_updated())
        return sanitized
