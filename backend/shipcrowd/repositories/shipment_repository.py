"""
Shipment Repository (read-only)

Shipments are written by the courier integrations; fulfillment only reads
them to push tracking to WooCommerce.
"""
from typing import Optional

from shipcrowd.domain.shipment import Shipment
from shipcrowd.core.database import connection_scope


class ShipmentRepository:

    def find_by_id(self, shipment_id: int, conn=None) -> Optional[Shipment]:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    SELECT id, order_id, tracking_number, carrier, status, tracking_url,
                           created_at, updated_at
                    FROM shipments
                    WHERE id = %s
                """, (shipment_id,))
                row = cursor.fetchone()
                return Shipment(**row) if row else None
            finally:
                cursor.close()
