from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Any, Optional

from app.distribution.models import to_decimal


logger = logging.getLogger("payoutdist.limits")


def sanitize_limit(max_amount: Any) -> Optional[Decimal]:
    """Missing, zero or negative limits mean "no limit"."""
    value = to_decimal(max_amount)
    if value is None or value.is_nan() or value <= 0:
        return None
    return value


class CapacityRegistry:
    """
    Per-trader maximum payout amount, kept in memory only.
    Resets on restart.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._limits: dict[str, Decimal] = {}

    def set_limit(self, trader_id: str, max_amount: Any) -> Optional[Decimal]:
        sanitized = sanitize_limit(max_amount)
        with self._lock:
            if sanitized is None:
                self._limits.pop(trader_id, None)
            else:
                self._limits[trader_id] = sanitized

        logger.info("Updated trader limit: trader=%s limit=%s", trader_id, sanitized)
        return sanitized

    def get(self, trader_id: str) -> Optional[Decimal]:
        with self._lock:
            return self._limits.get(trader_id)

    def snapshot(self) -> dict[str, Decimal]:
        with self._lock:
            return dict(self._limits)
