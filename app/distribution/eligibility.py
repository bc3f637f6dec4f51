from __future__ import annotations

from db import get_conn
from app.distribution import repository
from app.distribution.limits import CapacityRegistry
from app.distribution.models import Trader, UnassignedPayout


def list_eligible_traders() -> list[Trader]:
    """Traders allowed to take payouts right now, in numericId order."""
    with get_conn() as conn:
        return repository.fetch_eligible_traders(conn)


def list_unassigned_payouts() -> list[UnassignedPayout]:
    """Payouts waiting for a trader, oldest first."""
    with get_conn() as conn:
        return repository.fetch_unassigned_payouts(conn)


def load_traders_with_limits(limits: CapacityRegistry) -> list[Trader]:
    traders = list_eligible_traders()
    snapshot = limits.snapshot()
    return [trader.with_limit(snapshot.get(trader.id)) for trader in traders]
