# app/distribution/committer.py
from __future__ import annotations

import enum
import logging

from db import get_conn
from app.distribution import repository
from app.events.bus import EventBus, ServerEvent
from services.metrics import increment_assignment


logger = logging.getLogger("payoutdist.claims")

SOURCE_MANUAL = "manual"
SOURCE_AUTO = "auto"


class ClaimOutcome(str, enum.Enum):
    APPLIED = "APPLIED"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"


class ClaimCommitter:
    """
    Applies one (payout, trader) pairing in its own transaction.

    The conditional UPDATE is the only synchronization between the automatic
    and manual paths: whoever matches the predicate first owns the payout,
    everyone else gets NOT_ELIGIBLE.
    """

    def __init__(self, events: EventBus, *, acceptance_time: int = 40):
        self._events = events
        self._acceptance_time = acceptance_time

    def commit(
        self,
        payout_id: str,
        trader_id: str,
        *,
        source: str,
        notify: bool = True,
    ) -> ClaimOutcome:
        with get_conn() as conn:
            applied = repository.claim_payout(
                conn,
                payout_id=payout_id,
                trader_id=trader_id,
                acceptance_time=self._acceptance_time,
            )

        if not applied:
            increment_assignment(source, "not_eligible")
            return ClaimOutcome.NOT_ELIGIBLE

        increment_assignment(source, "applied")
        if notify:
            self._events.publish(ServerEvent.payouts_updated(source))
        return ClaimOutcome.APPLIED
