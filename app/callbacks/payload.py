from __future__ import annotations

from decimal import Decimal
from typing import Any

from app.distribution.models import PayoutDetails


CANCELED_EVENT = "CANCELED"


def _number(value: Decimal) -> float:
    return float(value)


def build_cancel_payload(payout: PayoutDetails) -> dict[str, Any]:
    """Body POSTed to the merchant's webhook after a cancellation."""
    return {
        "event": CANCELED_EVENT,
        "payout": {
            "id": payout.id,
            "bank": payout.bank,
            "amount": _number(payout.amount),
            "status": CANCELED_EVENT,
            "wallet": payout.wallet,
            "metadata": payout.merchant_metadata or {},
            "numericId": payout.numeric_id,
            "amountUsdt": _number(payout.amount_usdt),
            "proofFiles": list(payout.proof_files),
            "cancelReason": payout.cancel_reason,
            "disputeFiles": list(payout.dispute_files),
            "disputeMessage": payout.dispute_message,
            "cancelReasonCode": payout.cancel_reason_code,
            "externalReference": payout.external_reference,
        },
    }
