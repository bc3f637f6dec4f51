# app/callbacks/dispatcher.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from db import get_conn
from app.callbacks import repository as callback_repository
from app.callbacks.http import HttpClient
from app.distribution.models import CallbackAttempt, PayoutDetails
from services.errors import AuditFailure
from services.metrics import increment_callback


logger = logging.getLogger("payoutdist.callbacks")

API_KEY_HEADER = "x-merchant-api-key"
MISSING_WEBHOOK_URL = "(missing-webhook-url)"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class DispatchResult:
    delivered: bool
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    error: Optional[str] = None
    url: Optional[str] = None
    attempted: bool = True

    @classmethod
    def not_attempted(cls, reason: str, url: Optional[str]) -> "DispatchResult":
        return cls(delivered=False, error=reason, url=url, attempted=False)

    @property
    def outcome(self) -> str:
        if not self.attempted:
            return "not_attempted"
        return "delivered" if self.delivered else "failed"


class CallbackDispatcher:
    def __init__(self, http: HttpClient, *, response_max_chars: int = 4000):
        self._http = http
        self._response_max_chars = response_max_chars

    def dispatch(self, payout: PayoutDetails, payload: dict[str, Any]) -> DispatchResult:
        """
        Deliver `payload` to the payout's merchant and record the outcome.

        Every outcome, including "not attempted", is written to the audit
        log before returning; a failed audit write raises AuditFailure.
        """
        url = _clean(payout.merchant_webhook_url)
        if url is None:
            result = DispatchResult.not_attempted(
                "Merchant webhook URL is not configured", MISSING_WEBHOOK_URL
            )
            return self._record(payout, payload, result)

        api_key = _clean(payout.merchant_api_key)
        if api_key is None:
            result = DispatchResult.not_attempted("Merchant API key is not configured", url)
            return self._record(payout, payload, result)

        try:
            resp = self._http.post_json(url, headers={API_KEY_HEADER: api_key}, json_body=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            result = DispatchResult(
                delivered=False,
                error=f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__,
                url=url,
            )
        else:
            body = resp.text or None
            if body is not None and len(body) > self._response_max_chars:
                body = body[: self._response_max_chars]
            result = DispatchResult(
                delivered=resp.is_success,
                status_code=resp.status_code,
                response_body=body,
                error=None if resp.is_success else f"HTTP {resp.status_code}",
                url=url,
            )

        return self._record(payout, payload, result)

    def _record(self, payout: PayoutDetails, payload: dict[str, Any], result: DispatchResult) -> DispatchResult:
        increment_callback(result.outcome)
        logger.info(
            "Payout callback payout=%s url=%s delivered=%s status=%s error=%s",
            payout.id,
            result.url,
            result.delivered,
            result.status_code,
            result.error,
        )

        attempt = CallbackAttempt(
            payout_id=payout.id,
            url=result.url or MISSING_WEBHOOK_URL,
            payload=payload,
            status_code=result.status_code,
            response_body=result.response_body,
            error=result.error,
        )
        try:
            with get_conn() as conn:
                callback_repository.insert_callback_attempt(conn, attempt)
        except Exception as exc:
            logger.exception("Failed to record payout callback log payout=%s", payout.id)
            raise AuditFailure(
                f"Payout {payout.id} was cancelled but the callback outcome could not be logged"
            ) from exc

        return result

    def close(self) -> None:
        self._http.close()
