"""
PostgreSQL database access

- psycopg2 connections with RealDictCursor (repositories, raw SQL)
- SQLAlchemy engine + declarative Base (schema definition only)

Author: TM3
Updated: 2026-02-09
"""
import time
import logging
from contextlib import contextmanager
from functools import lru_cache

import psycopg2
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

from .config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def database_url() -> str:
    if not settings.DATABASE_URL:
        raise Exception("DATABASE_URL not configured")
    return settings.DATABASE_URL


@lru_cache(maxsize=1)
def get_engine():
    """SQLAlchemy engine, built on first use by the schema scripts"""
    return create_engine(database_url(), pool_pre_ping=True, pool_size=5, max_overflow=10)


# ============================================================================
# psycopg2 connections
# ============================================================================

def get_db_connection_dict():
    """New psycopg2 connection whose cursors return dict rows"""
    return psycopg2.connect(database_url(), cursor_factory=RealDictCursor)


@contextmanager
def connection_scope(conn=None):
    """
    Yield a connection for a unit of work

    If the caller passes a connection, it is reused as-is and the caller owns
    commit/rollback. Otherwise a fresh connection is opened, committed on
    success, rolled back on error and always closed.

    Usage:
        with connection_scope(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(...)
    """
    if conn is not None:
        yield conn
        return

    conn = get_db_connection_dict()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def get_db_connection_with_retry(max_retries=3, retry_delay=1.0):
    """
    Open a checked connection, retrying OperationalError with exponential backoff

    Raises:
        psycopg2.OperationalError: after the last failed attempt
    """
    url = database_url()

    for attempt in range(1, max_retries + 1):
        try:
            conn = psycopg2.connect(url, cursor_factory=RealDictCursor)
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
            return conn
        except psycopg2.OperationalError as e:
            logger.warning(f"Database connection attempt {attempt}/{max_retries} failed: {e}")
            if attempt == max_retries:
                raise
            time.sleep(retry_delay * (2 ** (attempt - 1)))
