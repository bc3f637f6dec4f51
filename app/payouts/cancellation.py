# app/payouts/cancellation.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from db import get_conn
from app.callbacks.dispatcher import CallbackDispatcher, DispatchResult
from app.callbacks.payload import CANCELED_EVENT, build_cancel_payload
from app.distribution import repository
from app.events.bus import EventBus, ServerEvent
from app.payouts.state_machine import CANCELLED, assert_cancellable
from services.errors import Conflict, NotFound, Unavailable
from services.metrics import increment_cancellation


logger = logging.getLogger("payoutdist.cancellation")

SOURCE_MANUAL_CANCEL = "manual-cancel"


@dataclass(frozen=True)
class CancellationResult:
    success: bool
    status: str
    callback: DispatchResult

    @property
    def callback_dispatched(self) -> bool:
        return self.callback.delivered

    @property
    def callback_error(self) -> Optional[str]:
        return self.callback.error


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def cancel_payout(
    payout_id: str,
    *,
    reason: Optional[str],
    reason_code: Optional[str],
    dispatcher: CallbackDispatcher,
    events: EventBus,
) -> CancellationResult:
    """
    Lock the payout row, move it to CANCELLED, commit, and only then notify
    the merchant. The cancellation stands whether or not the callback lands.
    """
    reason = _optional_text(reason)
    reason_code = _optional_text(reason_code)

    with get_conn() as conn:
        payout = repository.lock_payout_for_update(conn, payout_id)
        if payout is None:
            increment_cancellation("not_found")
            raise NotFound("Payout not found")

        try:
            assert_cancellable(payout.status)
        except Conflict:
            increment_cancellation("conflict")
            raise

        updated = repository.mark_cancelled(
            conn,
            payout_id=payout_id,
            reason=reason,
            reason_code=reason_code,
        )
        if not updated:
            increment_cancellation("error")
            raise Unavailable("Failed to cancel payout")

    increment_cancellation("cancelled")
    if reason is not None:
        payout.cancel_reason = reason
    if reason_code is not None:
        payout.cancel_reason_code = reason_code
    payout.status = CANCELLED
    logger.info("Cancelled payout %s reason_code=%s", payout_id, payout.cancel_reason_code)

    payload = build_cancel_payload(payout)
    try:
        callback = dispatcher.dispatch(payout, payload)
    finally:
        events.publish(ServerEvent.payouts_updated(SOURCE_MANUAL_CANCEL))

    return CancellationResult(success=True, status=CANCELED_EVENT, callback=callback)
