# schemas.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.distribution.config import AutoDistributionConfig
from app.distribution.models import Trader, UnassignedPayout
from app.payouts.cancellation import CancellationResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------- TRADERS --------
class TraderOut(CamelModel):
    id: str
    email: str
    numeric_id: int
    balance_rub: Optional[float] = None
    frozen_rub: Optional[float] = None
    payout_balance: Optional[float] = None
    max_amount: Optional[float] = None

    @classmethod
    def from_trader(cls, t: Trader) -> "TraderOut":
        return cls(
            id=t.id,
            email=t.email,
            numeric_id=t.numeric_id,
            balance_rub=_f(t.balance_rub),
            frozen_rub=_f(t.frozen_rub),
            payout_balance=_f(t.payout_balance),
            max_amount=_f(t.max_amount),
        )


class UpdateLimitRequest(CamelModel):
    max_amount: Optional[float] = None


class UpdateLimitResponse(CamelModel):
    trader_id: str
    max_amount: Optional[float] = None


# -------- PAYOUTS --------
class UnassignedPayoutOut(CamelModel):
    id: str
    numeric_id: int
    amount: Optional[float] = None
    bank: Optional[str] = None
    external_reference: Optional[str] = None

    @classmethod
    def from_payout(cls, p: UnassignedPayout) -> "UnassignedPayoutOut":
        return cls(
            id=p.id,
            numeric_id=p.numeric_id,
            amount=_f(p.amount),
            bank=p.bank,
            external_reference=p.external_reference,
        )


class AssignPayoutRequest(CamelModel):
    trader_id: str = ""


class AssignPayoutResponse(CamelModel):
    success: bool


class CancelPayoutRequest(CamelModel):
    reason: Optional[str] = None
    reason_code: Optional[str] = None


class CancelPayoutResponse(CamelModel):
    success: bool
    status: str
    callback_dispatched: bool
    callback_error: Optional[str] = None

    @classmethod
    def from_result(cls, r: CancellationResult) -> "CancelPayoutResponse":
        return cls(
            success=r.success,
            status=r.status,
            callback_dispatched=r.callback_dispatched,
            callback_error=r.callback_error,
        )


# -------- SETTINGS --------
class AutoDistributionSettings(CamelModel):
    enabled: bool
    interval_seconds: int = Field(ge=0)

    @classmethod
    def from_config(cls, c: AutoDistributionConfig) -> "AutoDistributionSettings":
        return cls(enabled=c.enabled, interval_seconds=c.interval_seconds)


TraderList = List[TraderOut]
PayoutList = List[UnassignedPayoutOut]


def _f(value) -> Optional[float]:
    return float(value) if value is not None else None
