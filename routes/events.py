# routes/events.py
from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.distribution.service import PayoutDistributionService
from app.events.bus import Subscription
from deps.runtime import get_service
from settings import settings


logger = logging.getLogger("payoutdist.http.events")
router = APIRouter(prefix="/api", tags=["events"])


async def sse_stream(sub: Subscription, keepalive_s: float) -> AsyncIterator[str]:
    """
    Server-sent events for one subscriber. Runs on the event loop, so an idle
    stream holds no worker thread. Idle periods produce a comment line so
    proxies keep the connection open.
    """
    sub.bind_loop(asyncio.get_running_loop())
    try:
        while not sub.closed:
            event = await sub.aget(keepalive_s)
            if event is None:
                if sub.closed:
                    break
                yield ": keep-alive\n\n"
                continue
            yield f"data: {json.dumps(event.to_dict())}\n\n"
    finally:
        if sub.dropped:
            logger.warning("SSE subscriber lagged; %s events dropped", sub.dropped)
        sub.close()


@router.get("/events")
async def events(service: PayoutDistributionService = Depends(get_service)):
    sub = service.subscribe()
    return StreamingResponse(
        sse_stream(sub, settings.SSE_KEEPALIVE_S),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
