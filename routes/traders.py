# routes/traders.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.distribution.service import PayoutDistributionService
from deps.runtime import get_service
from schemas import TraderList, TraderOut, UpdateLimitRequest, UpdateLimitResponse
from services.errors import DistributionError, raise_http_from_error


router = APIRouter(prefix="/api/traders", tags=["traders"])


@router.get("", response_model=TraderList)
def get_traders(service: PayoutDistributionService = Depends(get_service)):
    try:
        traders = service.list_traders()
    except DistributionError as exc:
        raise_http_from_error(exc)
    return [TraderOut.from_trader(t) for t in traders]


@router.post("/{trader_id}/limit", response_model=UpdateLimitResponse)
def update_trader_limit(
    trader_id: str,
    body: UpdateLimitRequest,
    service: PayoutDistributionService = Depends(get_service),
):
    sanitized = service.set_trader_limit(trader_id, body.max_amount)
    return UpdateLimitResponse(
        trader_id=trader_id,
        max_amount=float(sanitized) if sanitized is not None else None,
    )
