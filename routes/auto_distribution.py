from __future__ import annotations

from fastapi import APIRouter, Depends

from app.distribution.service import PayoutDistributionService
from deps.runtime import get_service
from schemas import AutoDistributionSettings


router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/auto-distribution", response_model=AutoDistributionSettings)
def get_auto_settings(service: PayoutDistributionService = Depends(get_service)):
    return AutoDistributionSettings.from_config(service.get_auto_config())


@router.post("/auto-distribution", response_model=AutoDistributionSettings)
def update_auto_settings(
    body: AutoDistributionSettings,
    service: PayoutDistributionService = Depends(get_service),
):
    updated = service.set_auto_config(body.enabled, body.interval_seconds)
    return AutoDistributionSettings.from_config(updated)
