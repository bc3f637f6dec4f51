from __future__ import annotations

import random
from collections import Counter
from decimal import Decimal

from app.distribution import policy
from app.distribution.models import Trader, UnassignedPayout


def _traders(n: int) -> list[Trader]:
    return [Trader(id=f"W{i + 1}", email=f"w{i + 1}@example.com", numeric_id=i + 1) for i in range(n)]


def _payouts(*amounts) -> list[UnassignedPayout]:
    return [
        UnassignedPayout(id=f"P{i + 1}", numeric_id=i + 1, amount=Decimal(str(a)))
        for i, a in enumerate(amounts)
    ]


def _pairs(plan) -> list[tuple[str, str]]:
    return [(p.payout.id, p.trader.id) for p in plan.pairings]


def test_limit_diverts_payout_to_next_trader():
    traders = _traders(2)
    payouts = _payouts(500, 1500)

    plan = policy.assign(traders, payouts, {"W1": Decimal("1000")}, 0)

    assert _pairs(plan) == [("P1", "W1"), ("P2", "W2")]
    # W2 sat at index 1, so the cursor wraps
    assert plan.cursor == 0
    assert plan.skipped == []


def test_round_robin_wraps_from_cursor():
    plan = policy.assign(_traders(3), _payouts(10, 20, 30, 40), {}, 2)

    assert _pairs(plan) == [("P1", "W3"), ("P2", "W1"), ("P3", "W2"), ("P4", "W3")]
    assert plan.cursor == 0


def test_no_trader_accepts_amount_is_skipped():
    limits = {"W1": Decimal("100"), "W2": Decimal("200")}
    plan = policy.assign(_traders(2), _payouts(50, 5000, 150), limits, 0)

    assert _pairs(plan) == [("P1", "W1"), ("P3", "W2")]
    assert [p.id for p in plan.skipped] == ["P2"]
    assert plan.cursor == 0


def test_amount_equal_to_limit_is_accepted():
    plan = policy.assign(_traders(1), _payouts(100), {"W1": Decimal("100")}, 0)
    assert _pairs(plan) == [("P1", "W1")]


def test_non_positive_amounts_are_ignored():
    payouts = _payouts(0, -5) + [UnassignedPayout(id="P3", numeric_id=3, amount=None)]
    plan = policy.assign(_traders(2), payouts, {}, 1)

    assert plan.pairings == []
    assert plan.skipped == []
    assert plan.cursor == 1


def test_nan_amount_is_ignored_without_breaking_the_batch():
    payouts = [
        UnassignedPayout(id="BAD", numeric_id=1, amount=Decimal("NaN")),
        UnassignedPayout(id="P2", numeric_id=2, amount=Decimal("100")),
    ]

    plan = policy.assign(_traders(1), payouts, {}, 0)

    assert _pairs(plan) == [("P2", "W1")]
    assert plan.skipped == []


def test_empty_traders_keep_cursor():
    plan = policy.assign([], _payouts(10), {}, 7)
    assert plan.pairings == []
    assert plan.cursor == 7


def test_empty_payouts_keep_cursor():
    plan = policy.assign(_traders(3), [], {}, 2)
    assert plan.pairings == []
    assert plan.cursor == 2


def test_out_of_range_cursor_wraps():
    plan = policy.assign(_traders(3), _payouts(10), {}, 4)
    assert _pairs(plan) == [("P1", "W2")]
    assert plan.cursor == 2


def test_accepts():
    assert policy.accepts(None, Decimal("1e9"))
    assert policy.accepts(Decimal("10"), Decimal("10"))
    assert not policy.accepts(Decimal("10"), Decimal("10.01"))


# ---------------------------
# randomized properties
# ---------------------------

def _random_case(rng: random.Random):
    traders = _traders(rng.randint(1, 6))
    payouts = _payouts(*[rng.choice([0, rng.randint(1, 2000)]) for _ in range(rng.randint(0, 15))])
    limits = {
        t.id: Decimal(rng.randint(1, 1500))
        for t in traders
        if rng.random() < 0.5
    }
    cursor = rng.randint(0, len(traders) - 1)
    return traders, payouts, limits, cursor


def test_same_inputs_give_same_plan():
    rng = random.Random(1234)
    for _ in range(200):
        traders, payouts, limits, cursor = _random_case(rng)
        first = policy.assign(traders, payouts, limits, cursor)
        second = policy.assign(traders, payouts, limits, cursor)
        assert first == second


def test_pairings_respect_limits_and_cover_each_payout_once():
    rng = random.Random(42)
    for _ in range(300):
        traders, payouts, limits, cursor = _random_case(rng)
        plan = policy.assign(traders, payouts, limits, cursor)

        for pairing in plan.pairings:
            limit = limits.get(pairing.trader.id)
            assert limit is None or pairing.payout.amount <= limit

        paired = [p.payout.id for p in plan.pairings]
        skipped = [p.id for p in plan.skipped]
        assert len(paired) == len(set(paired))
        assert not set(paired) & set(skipped)

        positive = [p.id for p in payouts if p.amount > 0]
        assert sorted(paired + skipped) == sorted(positive)
        assert 0 <= plan.cursor < len(traders)


def test_unlimited_traders_share_evenly():
    rng = random.Random(7)
    for _ in range(100):
        n = rng.randint(1, 6)
        traders = _traders(n)
        payouts = _payouts(*[rng.randint(1, 1000) for _ in range(rng.randint(1, 40))])
        plan = policy.assign(traders, payouts, {}, rng.randint(0, n - 1))

        counts = Counter(p.trader.id for p in plan.pairings)
        per_trader = [counts.get(t.id, 0) for t in traders]
        assert max(per_trader) - min(per_trader) <= 1


def test_skipped_payout_does_not_shift_the_rotation():
    rng = random.Random(99)
    for _ in range(100):
        n = rng.randint(1, 5)
        traders = _traders(n)
        cap = {t.id: Decimal("1000") for t in traders}
        accepted = _payouts(*[rng.randint(1, 1000) for _ in range(rng.randint(1, 10))])
        huge = UnassignedPayout(id="HUGE", numeric_id=999, amount=Decimal("50000"))
        cursor = rng.randint(0, n - 1)

        with_huge = list(accepted)
        with_huge.insert(rng.randint(0, len(accepted)), huge)

        base = policy.assign(traders, accepted, cap, cursor)
        mixed = policy.assign(traders, with_huge, cap, cursor)

        assert _pairs(base) == _pairs(mixed)
        assert base.cursor == mixed.cursor
        assert [p.id for p in mixed.skipped] == ["HUGE"]
