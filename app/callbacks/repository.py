# app/callbacks/repository.py
from __future__ import annotations

import uuid

from psycopg2.extras import Json

from app.distribution.models import CallbackAttempt


INSERT_CALLBACK_HISTORY_SQL = """
INSERT INTO "PayoutCallbackHistory" (
  "id", "payoutId", "url", "payload", "response", "statusCode", "error"
)
VALUES (
  %(id)s, %(payout_id)s, %(url)s, %(payload)s, %(response)s, %(status_code)s, %(error)s
)
"""


def insert_callback_attempt(conn, attempt: CallbackAttempt) -> str:
    """
    Append one callback outcome to the audit trail. Rows are never updated.
    NOTE: caller commits.
    """
    attempt_id = str(uuid.uuid4())
    params = {
        "id": attempt_id,
        "payout_id": attempt.payout_id,
        "url": attempt.url,
        "payload": Json(attempt.payload),
        "response": attempt.response_body,
        "status_code": attempt.status_code,
        "error": attempt.error,
    }
    with conn.cursor() as cur:
        cur.execute(INSERT_CALLBACK_HISTORY_SQL, params)
    return attempt_id
