# db.py
from __future__ import annotations

import logging
from contextlib import contextmanager

import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from settings import settings

logger = logging.getLogger("payoutdist.db")

_pool: ThreadedConnectionPool | None = None


def init_pool() -> ThreadedConnectionPool:
    """
    Open the shared pool on first use. Request threads and the
    auto-distribution thread borrow from the same pool.
    """
    global _pool
    if _pool is None:
        psycopg2.extras.register_uuid()
        _pool = ThreadedConnectionPool(
            minconn=settings.DB_POOL_MIN,
            maxconn=settings.DB_POOL_MAX,
            dsn=settings.DATABASE_URL,
            connect_timeout=settings.DB_CONNECT_TIMEOUT_S,
        )
        logger.info("DB pool opened min=%s max=%s", settings.DB_POOL_MIN, settings.DB_POOL_MAX)
    return _pool


def close_pool() -> None:
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None
        logger.info("DB pool closed")


@contextmanager
def get_conn():
    """
    One transaction per block: commit on clean exit, roll back on any error.
    Row locks taken inside the block are held until it exits.
    """
    pool = init_pool()
    conn = pool.getconn()

    try:
        with conn.cursor() as cur:
            cur.execute("SET application_name = %s;", (settings.APP_NAME,))

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        pool.putconn(conn)
