# app/distribution/repository.py
from __future__ import annotations

from typing import Any, Optional

from psycopg2.extras import RealDictCursor

from app.distribution.models import PayoutDetails, Trader, UnassignedPayout


# ==========================================================
# Eligibility
# ==========================================================

ELIGIBLE_TRADERS_SQL = """
    SELECT DISTINCT
        u."id",
        u."email",
        u."numericId",
        u."balanceRub",
        u."frozenRub",
        u."payoutBalance"
    FROM "Payout" p
    JOIN "TraderMerchant" tm
        ON tm."merchantId" = p."merchantId"
    JOIN "User" u
        ON u."id" = tm."traderId"
    WHERE p."direction" = 'OUT'
      AND p."status" = 'CREATED'
      AND (p."traderId" IS NULL OR p."traderId" = u."id")
      AND tm."isMerchantEnabled" = TRUE
      AND tm."isFeeOutEnabled" = TRUE
      AND COALESCE(u."balanceRub", 0) > 0
      AND u."trafficEnabled" = TRUE
      AND u."banned" = FALSE
    ORDER BY u."numericId"
"""

UNASSIGNED_PAYOUTS_SQL = """
    SELECT
        p."id",
        p."numericId",
        p."amount",
        p."bank",
        p."externalReference"
    FROM "Payout" p
    LEFT JOIN "AggregatorPayout" ap
        ON ap."payoutId" = p."id"
    WHERE p."direction" = 'OUT'
      AND p."status" = 'CREATED'
      AND p."acceptedAt" IS NULL
      AND p."traderId" IS NULL
      AND ap."payoutId" IS NULL
    ORDER BY p."createdAt"
"""


def fetch_eligible_traders(conn) -> list[Trader]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(ELIGIBLE_TRADERS_SQL)
        return [Trader.from_row(row) for row in cur.fetchall()]


def fetch_unassigned_payouts(conn) -> list[UnassignedPayout]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(UNASSIGNED_PAYOUTS_SQL)
        return [UnassignedPayout.from_row(row) for row in cur.fetchall()]


# ==========================================================
# Claim
# ==========================================================

CLAIM_PAYOUT_SQL = """
    UPDATE "Payout"
    SET "traderId" = %s,
        "acceptanceTime" = %s
    WHERE "id" = %s
      AND "traderId" IS NULL
      AND "direction" = 'OUT'
      AND "status" = 'CREATED'
      AND "acceptedAt" IS NULL
      AND NOT EXISTS (
          SELECT 1
          FROM "AggregatorPayout" ap
          WHERE ap."payoutId" = "Payout"."id"
      )
"""


def claim_payout(conn, *, payout_id: str, trader_id: str, acceptance_time: int) -> bool:
    """
    Conditional write; True iff this call took the payout.
    A concurrent claimer sees rowcount 0.
    """
    with conn.cursor() as cur:
        cur.execute(CLAIM_PAYOUT_SQL, (trader_id, acceptance_time, payout_id))
        return (cur.rowcount or 0) > 0


# ==========================================================
# Cancellation
# ==========================================================

LOCK_PAYOUT_SQL = """
    SELECT
        p."id",
        p."numericId" AS "numeric_id",
        p."amount",
        p."amountUsdt" AS "amount_usdt",
        p."status"::text AS "status",
        p."wallet",
        p."bank",
        p."externalReference" AS "external_reference",
        p."merchantId" AS "merchant_id",
        p."merchantWebhookUrl" AS "merchant_webhook_url",
        p."merchantMetadata" AS "merchant_metadata",
        p."proofFiles" AS "proof_files",
        p."disputeFiles" AS "dispute_files",
        p."disputeMessage" AS "dispute_message",
        p."cancelReason" AS "cancel_reason",
        p."cancelReasonCode" AS "cancel_reason_code",
        p."traderId" AS "trader_id",
        p."createdAt" AS "created_at",
        m."apiKeyPublic" AS "merchant_api_key"
    FROM "Payout" p
    LEFT JOIN "Merchant" m
        ON m."id" = p."merchantId"
    WHERE p."id" = %s
    FOR UPDATE OF p
"""

MARK_CANCELLED_SQL = """
    UPDATE "Payout"
    SET "status" = 'CANCELLED',
        "cancelledAt" = CURRENT_TIMESTAMP,
        "cancelReason" = COALESCE(%s, "cancelReason"),
        "cancelReasonCode" = COALESCE(%s, "cancelReasonCode")
    WHERE "id" = %s
"""


def lock_payout_for_update(conn, payout_id: str) -> Optional[PayoutDetails]:
    """Row stays locked until the surrounding transaction ends."""
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(LOCK_PAYOUT_SQL, (payout_id,))
        row = cur.fetchone()
        return PayoutDetails.from_row(row) if row else None


def mark_cancelled(
    conn,
    *,
    payout_id: str,
    reason: Optional[str],
    reason_code: Optional[str],
) -> bool:
    with conn.cursor() as cur:
        cur.execute(MARK_CANCELLED_SQL, (reason, reason_code, payout_id))
        return (cur.rowcount or 0) > 0


def ping(conn) -> Any:
    with conn.cursor() as cur:
        cur.execute("SELECT 1;")
        return cur.fetchone()
