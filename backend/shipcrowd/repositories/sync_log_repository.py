"""
Sync Log Repository

Sync runs are logged on their own connection (autocommit per call) so the
log survives a rollback of the data being synced.

Author: TM3
Date: 2026-02-10
"""
from typing import List, Optional

from psycopg2.extras import Json

from shipcrowd.domain.store import SyncLog
from shipcrowd.core.database import connection_scope


SYNC_LOG_COLUMNS = """
    id, store_id, sync_type, status, start_time, end_time,
    items_synced, items_skipped, items_failed, errors
"""


class SyncLogRepository:
    """Repository for WooCommerce sync logs"""

    def create(self, store_id: int, sync_type: str, conn=None) -> SyncLog:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    INSERT INTO woocommerce_sync_logs (store_id, sync_type, status, start_time, errors)
                    VALUES (%s, %s, 'IN_PROGRESS', NOW(), '[]'::jsonb)
                    RETURNING {SYNC_LOG_COLUMNS}
                """, (store_id, sync_type))
                return SyncLog(**cursor.fetchone())
            finally:
                cursor.close()

    def complete(
        self,
        log_id: int,
        status: str,
        items_synced: int = 0,
        items_skipped: int = 0,
        items_failed: int = 0,
        errors: Optional[List[str]] = None,
        conn=None
    ) -> Optional[SyncLog]:
        """Close a sync run with its final status and counters"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    UPDATE woocommerce_sync_logs
                    SET status = %s,
                        end_time = NOW(),
                        items_synced = %s,
                        items_skipped = %s,
                        items_failed = %s,
                        errors = %s
                    WHERE id = %s
                    RETURNING {SYNC_LOG_COLUMNS}
                """, (status, items_synced, items_skipped, items_failed, Json(errors or []), log_id))
                row = cursor.fetchone()
                return SyncLog(**row) if row else None
            finally:
                cursor.close()

    def fail(self, log_id: int, error: str, conn=None) -> Optional[SyncLog]:
        """Mark a run FAILED, keeping any counters already recorded"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    UPDATE woocommerce_sync_logs
                    SET status = 'FAILED',
                        end_time = NOW(),
                        errors = errors || %s
                    WHERE id = %s
                    RETURNING {SYNC_LOG_COLUMNS}
                """, (Json([error]), log_id))
                row = cursor.fetchone()
                return SyncLog(**row) if row else None
            finally:
                cursor.close()

    def find_by_id(self, log_id: int, store_id: Optional[int] = None, conn=None) -> Optional[SyncLog]:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                query = f"SELECT {SYNC_LOG_COLUMNS} FROM woocommerce_sync_logs WHERE id = %s"
                params = [log_id]
                if store_id is not None:
                    query += " AND store_id = %s"
                    params.append(store_id)
                cursor.execute(query, params)
                row = cursor.fetchone()
                return SyncLog(**row) if row else None
            finally:
                cursor.close()

    def find_recent(self, store_id: int, limit: int = 20, conn=None) -> List[SyncLog]:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    SELECT {SYNC_LOG_COLUMNS}
                    FROM woocommerce_sync_logs
                    WHERE store_id = %s
                    ORDER BY start_time DESC
                    LIMIT %s
                """, (store_id, limit))
                return [SyncLog(**row) for row in cursor.fetchall()]
            finally:
                cursor.close()
