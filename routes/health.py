from __future__ import annotations

import os

from fastapi import APIRouter, Request
from fastapi.responses import Response

from db import get_conn
from app.distribution import repository
from services.metrics import render_prometheus

router = APIRouter(tags=["health"])


def _check_db() -> tuple[bool, str | None]:
    try:
        with get_conn() as conn:
            repository.ping(conn)
        return True, None
    except Exception as exc:
        return False, type(exc).__name__


@router.get("/health")
def health(request: Request):
    db_ok, db_error = _check_db()
    service = getattr(request.app.state, "distribution", None)
    scheduler = service.scheduler if service is not None else None
    config = service.get_auto_config() if service is not None else None
    return {
        "ok": True,
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "db_ok": db_ok,
        "db_error": db_error,
        "scheduler": {
            "running": bool(scheduler and scheduler.running),
            "state": scheduler.state if scheduler else None,
            "auto_enabled": config.enabled if config else None,
            "interval_seconds": config.interval_seconds if config else None,
        },
    }


@router.get("/metrics")
def metrics():
    body = render_prometheus()
    return Response(content=body, media_type="text/plain; version=0.0.4")
