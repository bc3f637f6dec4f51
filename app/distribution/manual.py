from __future__ import annotations

import logging

from app.distribution.committer import SOURCE_MANUAL, ClaimCommitter, ClaimOutcome
from services.errors import InvalidInput, NotEligible


logger = logging.getLogger("payoutdist.manual")


def assign_manually(committer: ClaimCommitter, payout_id: str, trader_id: str | None) -> None:
    """
    Operator-chosen pairing. Goes through the same conditional claim as the
    scheduler and never touches the rotation cursor.
    """
    trader_id = (trader_id or "").strip()
    if not trader_id:
        raise InvalidInput("Trader ID is required")

    outcome = committer.commit(payout_id, trader_id, source=SOURCE_MANUAL)
    if outcome is ClaimOutcome.NOT_ELIGIBLE:
        raise NotEligible("Payout is not eligible for assignment")

    logger.info("Assigned payout %s to trader %s", payout_id, trader_id)
