# routes/payouts.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.distribution.service import PayoutDistributionService
from deps.runtime import get_service
from schemas import (
    AssignPayoutRequest,
    AssignPayoutResponse,
    CancelPayoutRequest,
    CancelPayoutResponse,
    PayoutList,
    UnassignedPayoutOut,
)
from services.errors import DistributionError, raise_http_from_error

logger = logging.getLogger("payoutdist.http.payouts")
router = APIRouter(prefix="/api/payouts", tags=["payouts"])


@router.get("", response_model=PayoutList)
def get_unassigned_payouts(service: PayoutDistributionService = Depends(get_service)):
    try:
        payouts = service.list_unassigned_payouts()
    except DistributionError as exc:
        raise_http_from_error(exc)
    return [UnassignedPayoutOut.from_payout(p) for p in payouts]


@router.post("/{payout_id}/assign", response_model=AssignPayoutResponse)
def assign_payout(
    payout_id: str,
    body: AssignPayoutRequest,
    service: PayoutDistributionService = Depends(get_service),
):
    try:
        service.assign(payout_id, body.trader_id)
    except DistributionError as exc:
        raise_http_from_error(exc)
    return AssignPayoutResponse(success=True)


@router.post("/{payout_id}/cancel", response_model=CancelPayoutResponse)
def cancel_payout(
    payout_id: str,
    body: CancelPayoutRequest,
    service: PayoutDistributionService = Depends(get_service),
):
    try:
        result = service.cancel(payout_id, reason=body.reason, reason_code=body.reason_code)
    except DistributionError as exc:
        logger.warning("cancel payout=%s failed: %s", payout_id, exc)
        raise_http_from_error(exc)
    return CancelPayoutResponse.from_result(result)
