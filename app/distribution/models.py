from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional


PAYOUT_STATUS_CREATED = "CREATED"
PAYOUT_STATUS_CANCELLED = "CANCELLED"


def to_decimal(value: Any) -> Optional[Decimal]:
    """Store columns come back as float or Decimal depending on the column type."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class Trader:
    id: str
    email: str
    numeric_id: int
    balance_rub: Optional[Decimal] = None
    frozen_rub: Optional[Decimal] = None
    payout_balance: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Trader":
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            numeric_id=int(row["numericId"]),
            balance_rub=to_decimal(row.get("balanceRub")),
            frozen_rub=to_decimal(row.get("frozenRub")),
            payout_balance=to_decimal(row.get("payoutBalance")),
        )

    def with_limit(self, max_amount: Optional[Decimal]) -> "Trader":
        return replace(self, max_amount=max_amount)


@dataclass(frozen=True)
class UnassignedPayout:
    id: str
    numeric_id: int
    amount: Optional[Decimal] = None
    bank: Optional[str] = None
    external_reference: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "UnassignedPayout":
        return cls(
            id=str(row["id"]),
            numeric_id=int(row["numericId"]),
            amount=to_decimal(row.get("amount")),
            bank=row.get("bank"),
            external_reference=row.get("externalReference"),
        )


@dataclass
class PayoutDetails:
    """A payout row read for update, joined with its merchant's callback credential."""

    id: str
    numeric_id: int
    amount: Decimal
    amount_usdt: Decimal
    status: str
    wallet: str
    bank: str
    merchant_id: str
    external_reference: Optional[str] = None
    merchant_webhook_url: Optional[str] = None
    merchant_metadata: Optional[dict[str, Any]] = None
    proof_files: list[str] = field(default_factory=list)
    dispute_files: list[str] = field(default_factory=list)
    dispute_message: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancel_reason_code: Optional[str] = None
    trader_id: Optional[str] = None
    merchant_api_key: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PayoutDetails":
        return cls(
            id=str(row["id"]),
            numeric_id=int(row["numeric_id"]),
            amount=to_decimal(row.get("amount")) or Decimal("0"),
            amount_usdt=to_decimal(row.get("amount_usdt")) or Decimal("0"),
            status=str(row.get("status") or ""),
            wallet=row.get("wallet") or "",
            bank=row.get("bank") or "",
            merchant_id=str(row.get("merchant_id") or ""),
            external_reference=row.get("external_reference"),
            merchant_webhook_url=row.get("merchant_webhook_url"),
            merchant_metadata=row.get("merchant_metadata"),
            proof_files=list(row.get("proof_files") or []),
            dispute_files=list(row.get("dispute_files") or []),
            dispute_message=row.get("dispute_message"),
            cancel_reason=row.get("cancel_reason"),
            cancel_reason_code=row.get("cancel_reason_code"),
            trader_id=row.get("trader_id"),
            merchant_api_key=row.get("merchant_api_key"),
            created_at=row.get("created_at"),
        )


@dataclass(frozen=True)
class Pairing:
    payout: UnassignedPayout
    trader: Trader


@dataclass(frozen=True)
class CallbackAttempt:
    payout_id: str
    url: str
    payload: dict[str, Any]
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    error: Optional[str] = None
