# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.distribution.service import PayoutDistributionService
from db import close_pool
from middleware import RequestContextMiddleware
from routes.auto_distribution import router as auto_distribution_router
from routes.events import router as events_router
from routes.health import router as health_router
from routes.payouts import router as payouts_router
from routes.traders import router as traders_router
from services.observability import configure_logging
from settings import settings, validate_env_settings

logger = logging.getLogger("payoutdist")


def create_app(
    service: Optional[PayoutDistributionService] = None,
    *,
    start_scheduler: bool = True,
) -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        validate_env_settings()
        svc = app.state.distribution
        if start_scheduler:
            svc.start()
        logger.info("Payout distribution service started")
        try:
            yield
        finally:
            svc.shutdown()
            close_pool()
            logger.info("Payout distribution service stopped")

    app = FastAPI(title="Payout Distributor", version="1.0.0", lifespan=lifespan)
    app.state.distribution = service or PayoutDistributionService.from_settings(settings)

    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(traders_router)
    app.include_router(payouts_router)
    app.include_router(auto_distribution_router)
    app.include_router(events_router)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
