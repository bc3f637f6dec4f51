# app/payouts/state_machine.py
from services.errors import Conflict


CANCELLED = "CANCELLED"
TERMINAL_STATUSES = frozenset({"CANCELLED", "COMPLETED", "SUCCESS", "FAILED"})


def assert_cancellable(status: str) -> None:
    """
    Any non-terminal status may move to CANCELLED; terminal ones may not.
    """
    status = (status or "").strip().upper()
    if status == CANCELLED:
        raise Conflict("Payout is already cancelled")
    if status in TERMINAL_STATUSES:
        raise Conflict(f"Payout with status {status} cannot be cancelled")
