from __future__ import annotations

from threading import Lock
from typing import Tuple


_lock = Lock()
_counters: dict[str, dict[Tuple[Tuple[str, str], ...], int]] = {}


def _inc(name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
    key = tuple(sorted((labels or {}).items()))
    with _lock:
        series = _counters.setdefault(name, {})
        series[key] = int(series.get(key, 0)) + int(value)


def get_counter(name: str, labels: dict[str, str] | None = None) -> int:
    key = tuple(sorted((labels or {}).items()))
    with _lock:
        return int(_counters.get(name, {}).get(key, 0))


def reset() -> None:
    with _lock:
        _counters.clear()


def increment_http_requests(route: str, status: int) -> None:
    _inc("http_requests_total", {"route": route, "status": str(status)})


def increment_distribution_cycle(result: str) -> None:
    _inc("distribution_cycles_total", {"result": result})


def increment_assignment(source: str, outcome: str) -> None:
    _inc("payout_assignments_total", {"source": source, "outcome": outcome})


def increment_cancellation(result: str) -> None:
    _inc("payout_cancellations_total", {"result": result})


def increment_callback(outcome: str) -> None:
    _inc("payout_callbacks_total", {"outcome": outcome})


def increment_events_dropped(value: int = 1) -> None:
    _inc("events_dropped_total", None, value)


_HELP = {
    "http_requests_total": "HTTP requests served, by route template and status.",
    "distribution_cycles_total": "Auto-distribution cycles, by result.",
    "payout_assignments_total": "Claim attempts, by source and outcome.",
    "payout_cancellations_total": "Cancellation requests, by result.",
    "payout_callbacks_total": "Merchant callbacks, by outcome.",
    "events_dropped_total": "Events overwritten in a lagging subscriber's buffer.",
}


def render_prometheus() -> str:
    with _lock:
        snapshot = {name: dict(series) for name, series in _counters.items()}

    lines: list[str] = []
    for name in sorted(snapshot):
        if name in _HELP:
            lines.append(f"# HELP {name} {_HELP[name]}")
        lines.append(f"# TYPE {name} counter")
        for labels, value in sorted(snapshot[name].items()):
            label_str = ",".join(f'{k}="{v}"' for k, v in labels)
            lines.append(f"{name}{{{label_str}}} {value}" if label_str else f"{name} {value}")
    return "\n".join(lines) + ("\n" if lines else "")
