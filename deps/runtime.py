# deps/runtime.py
from fastapi import HTTPException, Request, status

from app.distribution.service import PayoutDistributionService


def get_service(request: Request) -> PayoutDistributionService:
    service = getattr(request.app.state, "distribution", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="DISTRIBUTION_NOT_READY",
        )
    return service
