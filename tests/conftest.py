# tests/conftest.py

import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

import routes.health as health_routes
from app.callbacks import dispatcher as dispatcher_module
from app.callbacks import repository as callback_repository
from app.callbacks.http import HttpClient
from app.distribution import committer as committer_module
from app.distribution import eligibility as eligibility_module
from app.distribution import repository
from app.distribution.models import CallbackAttempt, PayoutDetails, Trader, UnassignedPayout
from app.distribution.service import PayoutDistributionService
from app.payouts import cancellation as cancellation_module
from main import create_app
from services import metrics
from settings import settings


# ---------------------------
# In-memory store
# ---------------------------

class FakeConn:
    def __init__(self, store: "FakeStore"):
        self.store = store


class FakeStore:
    """
    Stands in for the relational store. The claim is atomic under one lock,
    which is what the real conditional UPDATE gives us.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.traders: List[Trader] = []
        self.payouts: Dict[str, Dict[str, Any]] = {}
        self.callback_history: List[CallbackAttempt] = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_audit = False
        self.fail_reads: Optional[Exception] = None
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # ---- seeding ----
    def add_trader(self, trader_id: str, numeric_id: int, balance: str = "1000.00") -> Trader:
        trader = Trader(id=trader_id, email=f"{trader_id}@example.com", numeric_id=numeric_id, balance_rub=Decimal(balance))
        self.traders.append(trader)
        return trader

    def add_payout(
        self,
        payout_id: str,
        amount: str,
        *,
        status: str = "CREATED",
        trader_id: Optional[str] = None,
        accepted_at: Optional[datetime] = None,
        aggregator: bool = False,
        webhook_url: Optional[str] = "https://merchant.example/callback",
        api_key: Optional[str] = "merchant-key",
        cancel_reason: Optional[str] = None,
        cancel_reason_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._clock += timedelta(seconds=1)
        row = {
            "id": payout_id,
            "numericId": len(self.payouts) + 1,
            "amount": Decimal(amount),
            "amountUsdt": (Decimal(amount) / Decimal("90")).quantize(Decimal("0.01")),
            "status": status,
            "direction": "OUT",
            "wallet": "TWalletAddress",
            "bank": "SBER",
            "externalReference": f"ext-{payout_id}",
            "merchantId": "merchant-1",
            "merchantWebhookUrl": webhook_url,
            "merchantMetadata": {"order": payout_id},
            "apiKeyPublic": api_key,
            "traderId": trader_id,
            "acceptedAt": accepted_at,
            "acceptanceTime": None,
            "aggregator": aggregator,
            "cancelReason": cancel_reason,
            "cancelReasonCode": cancel_reason_code,
            "createdAt": self._clock,
        }
        self.payouts[payout_id] = row
        return row

    # ---- transactions ----
    @contextmanager
    def get_conn(self):
        conn = FakeConn(self)
        try:
            yield conn
            self.commits += 1
        except Exception:
            self.rollbacks += 1
            raise

    # ---- repository surface ----
    @staticmethod
    def _claimable(row: Dict[str, Any]) -> bool:
        return (
            row["traderId"] is None
            and row["direction"] == "OUT"
            and row["status"] == "CREATED"
            and row["acceptedAt"] is None
            and not row["aggregator"]
        )

    def fetch_eligible_traders(self, conn) -> List[Trader]:
        if self.fail_reads:
            raise self.fail_reads
        return sorted(self.traders, key=lambda t: t.numeric_id)

    def fetch_unassigned_payouts(self, conn) -> List[UnassignedPayout]:
        if self.fail_reads:
            raise self.fail_reads
        with self.lock:
            rows = [r for r in self.payouts.values() if self._claimable(r)]
        rows.sort(key=lambda r: r["createdAt"])
        return [
            UnassignedPayout(
                id=r["id"],
                numeric_id=r["numericId"],
                amount=r["amount"],
                bank=r["bank"],
                external_reference=r["externalReference"],
            )
            for r in rows
        ]

    def claim_payout(self, conn, *, payout_id: str, trader_id: str, acceptance_time: int) -> bool:
        with self.lock:
            row = self.payouts.get(payout_id)
            if row is None or not self._claimable(row):
                return False
            row["traderId"] = trader_id
            row["acceptanceTime"] = acceptance_time
            return True

    def lock_payout_for_update(self, conn, payout_id: str) -> Optional[PayoutDetails]:
        row = self.payouts.get(payout_id)
        if row is None:
            return None
        return PayoutDetails(
            id=row["id"],
            numeric_id=row["numericId"],
            amount=row["amount"],
            amount_usdt=row["amountUsdt"],
            status=row["status"],
            wallet=row["wallet"],
            bank=row["bank"],
            merchant_id=row["merchantId"],
            external_reference=row["externalReference"],
            merchant_webhook_url=row["merchantWebhookUrl"],
            merchant_metadata=row["merchantMetadata"],
            cancel_reason=row["cancelReason"],
            cancel_reason_code=row["cancelReasonCode"],
            trader_id=row["traderId"],
            merchant_api_key=row["apiKeyPublic"],
        )

    def mark_cancelled(self, conn, *, payout_id: str, reason: Optional[str], reason_code: Optional[str]) -> bool:
        with self.lock:
            row = self.payouts.get(payout_id)
            if row is None:
                return False
            row["status"] = "CANCELLED"
            if reason is not None:
                row["cancelReason"] = reason
            if reason_code is not None:
                row["cancelReasonCode"] = reason_code
            return True

    def insert_callback_attempt(self, conn, attempt: CallbackAttempt) -> str:
        if self.fail_audit:
            raise RuntimeError("audit table unavailable")
        self.callback_history.append(attempt)
        return f"cb-{len(self.callback_history)}"

    def ping(self, conn):
        return (1,)


@pytest.fixture()
def store(monkeypatch) -> FakeStore:
    fake = FakeStore()

    monkeypatch.setattr(repository, "fetch_eligible_traders", fake.fetch_eligible_traders)
    monkeypatch.setattr(repository, "fetch_unassigned_payouts", fake.fetch_unassigned_payouts)
    monkeypatch.setattr(repository, "claim_payout", fake.claim_payout)
    monkeypatch.setattr(repository, "lock_payout_for_update", fake.lock_payout_for_update)
    monkeypatch.setattr(repository, "mark_cancelled", fake.mark_cancelled)
    monkeypatch.setattr(repository, "ping", fake.ping)
    monkeypatch.setattr(callback_repository, "insert_callback_attempt", fake.insert_callback_attempt)

    for module in (committer_module, eligibility_module, cancellation_module, dispatcher_module, health_routes):
        monkeypatch.setattr(module, "get_conn", fake.get_conn)

    return fake


# ---------------------------
# Merchant endpoint
# ---------------------------

class MerchantEndpoint:
    """Programmable httpx transport recording every callback it receives."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.body = "ok"
        self.error: Optional[Exception] = None
        self.handler: Optional[Callable[[httpx.Request], httpx.Response]] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.handler is not None:
            return self.handler(request)
        return httpx.Response(self.status_code, text=self.body)

    def client(self) -> HttpClient:
        return HttpClient(timeout_s=1.0, transport=httpx.MockTransport(self))


@pytest.fixture()
def merchant() -> MerchantEndpoint:
    return MerchantEndpoint()


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield


# ---------------------------
# Service + HTTP client
# ---------------------------

@pytest.fixture()
def service(store: FakeStore, merchant: MerchantEndpoint) -> PayoutDistributionService:
    svc = PayoutDistributionService.from_settings(settings, http=merchant.client())
    yield svc
    svc.shutdown()


@pytest.fixture()
def client(service: PayoutDistributionService) -> TestClient:
    app = create_app(service, start_scheduler=False)
    return TestClient(app, raise_server_exceptions=False)
