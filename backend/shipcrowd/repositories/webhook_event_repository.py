"""
Webhook Event Repository

Records each WooCommerce webhook delivery once; (store_id, delivery_id) is
unique, which is what makes redeliveries no-ops.

Author: TM3
Date: 2026-02-10
"""
from typing import Optional

from shipcrowd.core.database import connection_scope


class WebhookEventRepository:
    """Repository for received webhook deliveries"""

    def record(self, store_id: int, delivery_id: str, topic: str, resource_id: Optional[int] = None,
               conn=None) -> Optional[int]:
        """
        Record a delivery

        Returns:
            The new event ID, or None if this delivery was already recorded
        """
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    INSERT INTO woocommerce_webhook_events (store_id, delivery_id, topic, resource_id, status)
                    VALUES (%s, %s, %s, %s, 'RECEIVED')
                    ON CONFLICT (store_id, delivery_id) DO NOTHING
                    RETURNING id
                """, (store_id, delivery_id, topic, resource_id))
                row = cursor.fetchone()
                return row['id'] if row else None
            finally:
                cursor.close()

    def mark(self, event_id: int, status: str, error: Optional[str] = None, conn=None) -> None:
        """Set the final status (PROCESSED, IGNORED or FAILED) of an event"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    UPDATE woocommerce_webhook_events
                    SET status = %s, error = %s, processed_at = NOW()
                    WHERE id = %s
                """, (status, error, event_id))
            finally:
                cursor.close()
