# app/distribution/policy.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from app.distribution.models import Pairing, Trader, UnassignedPayout


@dataclass(frozen=True)
class AssignmentPlan:
    pairings: list[Pairing] = field(default_factory=list)
    cursor: int = 0
    # payouts with a positive amount that no trader's limit accepts
    skipped: list[UnassignedPayout] = field(default_factory=list)


def accepts(limit: Optional[Decimal], amount: Decimal) -> bool:
    """No limit means unlimited."""
    return limit is None or amount <= limit


def assign(
    traders: Sequence[Trader],
    payouts: Sequence[UnassignedPayout],
    limits: Mapping[str, Decimal],
    cursor: int,
) -> AssignmentPlan:
    """
    Single-pass round robin.

    Each payout is offered to traders starting at the cursor, wrapping once
    around the list; the first trader whose limit accepts the amount wins and
    the cursor moves just past it. Payouts with a non-positive amount are
    ignored (as is NaN), payouts nobody accepts are skipped for this cycle.
    """
    if not traders:
        return AssignmentPlan(pairings=[], cursor=cursor, skipped=[])

    size = len(traders)
    current = cursor
    pairings: list[Pairing] = []
    skipped: list[UnassignedPayout] = []

    for payout in payouts:
        amount = payout.amount or Decimal("0")
        if amount.is_nan() or amount <= 0:
            continue

        selected: Optional[Trader] = None
        for offset in range(size):
            idx = (current + offset) % size
            trader = traders[idx]
            if accepts(limits.get(trader.id), amount):
                selected = trader
                current = (idx + 1) % size
                break

        if selected is None:
            skipped.append(payout)
        else:
            pairings.append(Pairing(payout=payout, trader=selected))

    return AssignmentPlan(pairings=pairings, cursor=current, skipped=skipped)
