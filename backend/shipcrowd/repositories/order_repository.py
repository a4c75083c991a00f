"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders and returns Order domain models.
Every method accepts an optional connection so services can run several
calls inside one transaction (see connection_scope).

Author: TM3
Date: 2026-02-09
"""
from typing import List, Optional, Tuple
from datetime import datetime, timezone

from psycopg2.extras import Json

from shipcrowd.domain.order import Order, OrderData, StatusHistoryEntry
from shipcrowd.core.database import connection_scope


ORDER_COLUMNS = """
    id, company_id, order_number, source, source_id, external_order_number,
    customer_info, products, shipping_details, totals, status_history, tags,
    current_status, payment_status, payment_method, currency, notes,
    warehouse_id, woocommerce_store_id, woocommerce_order_id,
    fulfillment_synced_at, created_at, updated_at
"""


def _json_list(items) -> Json:
    return Json([item.model_dump(mode="json") for item in items])


class OrderRepository:
    """
    Repository for Order data access

    All SQL queries for orders are centralized here.
    (company_id, source, source_id) is unique, so create() never duplicates
    a channel order.
    """

    def find_by_id(self, order_id: int, company_id: Optional[int] = None, conn=None) -> Optional[Order]:
        """
        Find order by ID

        Args:
            order_id: Internal order ID
            company_id: When given, the order must belong to this company

        Returns:
            Order or None if not found
        """
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                query = f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = %s"
                params = [order_id]
                if company_id is not None:
                    query += " AND company_id = %s"
                    params.append(company_id)

                cursor.execute(query, params)
                row = cursor.fetchone()
                return Order(**row) if row else None
            finally:
                cursor.close()

    def find_by_source_id(self, company_id: int, source: str, source_id: str, conn=None) -> Optional[Order]:
        """Find the order imported from a channel by its external ID"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    SELECT {ORDER_COLUMNS}
                    FROM orders
                    WHERE company_id = %s AND source = %s AND source_id = %s
                """, (company_id, source, str(source_id)))
                row = cursor.fetchone()
                return Order(**row) if row else None
            finally:
                cursor.close()

    def find_by_woocommerce_order_id(self, company_id: int, woocommerce_order_id: int, conn=None) -> Optional[Order]:
        return self.find_by_source_id(company_id, "woocommerce", str(woocommerce_order_id), conn=conn)

    def create(self, order: OrderData, conn=None) -> Optional[Order]:
        """
        Insert a new order

        Returns:
            The created Order, or None when an order with the same
            (company_id, source, source_id) already exists
        """
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    INSERT INTO orders (
                        company_id, order_number, source, source_id, external_order_number,
                        customer_info, products, shipping_details, totals, status_history, tags,
                        current_status, payment_status, payment_method, currency, notes,
                        warehouse_id, woocommerce_store_id, woocommerce_order_id, fulfillment_synced_at,
                        created_at, updated_at
                    ) VALUES (
                        %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s,
                        %s, %s, %s, %s,
                        %s, %s
                    )
                    ON CONFLICT (company_id, source, source_id) DO NOTHING
                    RETURNING {ORDER_COLUMNS}
                """, (
                    order.company_id, order.order_number, order.source, order.source_id,
                    order.external_order_number,
                    Json(order.customer_info.model_dump(mode="json")),
                    _json_list(order.products),
                    Json(order.shipping_details.model_dump(mode="json")),
                    Json(order.totals.model_dump(mode="json")),
                    _json_list(order.status_history),
                    Json(order.tags),
                    order.current_status, order.payment_status, order.payment_method,
                    order.currency, order.notes,
                    order.warehouse_id, order.woocommerce_store_id, order.woocommerce_order_id,
                    order.fulfillment_synced_at,
                    order.created_at, order.updated_at,
                ))
                row = cursor.fetchone()
                return Order(**row) if row else None
            finally:
                cursor.close()

    def update_from_channel(self, order_id: int, order: OrderData, conn=None) -> Optional[Order]:
        """
        Overwrite the channel-owned fields of an order (last write wins)

        The row is only touched when its updated_at is older than the
        incoming order's updated_at. warehouse_id, created_at and the
        existing status history are kept; a history entry is appended when
        the status changes.

        Returns:
            The updated Order, or None when the stored copy is as new or newer
        """
        history_entry = StatusHistoryEntry(
            status=order.current_status,
            timestamp=order.updated_at,
            comment="Status updated from WooCommerce" if order.source == "woocommerce" else "Status updated",
        )

        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    UPDATE orders SET
                        order_number = %s,
                        external_order_number = %s,
                        customer_info = %s,
                        products = %s,
                        shipping_details = %s,
                        totals = %s,
                        status_history = CASE
                            WHEN current_status <> %s THEN status_history || %s
                            ELSE status_history
                        END,
                        current_status = %s,
                        payment_status = %s,
                        payment_method = %s,
                        currency = %s,
                        notes = %s,
                        woocommerce_store_id = COALESCE(%s, woocommerce_store_id),
                        woocommerce_order_id = COALESCE(%s, woocommerce_order_id),
                        fulfillment_synced_at = COALESCE(fulfillment_synced_at, %s),
                        updated_at = %s
                    WHERE id = %s AND updated_at < %s
                    RETURNING {ORDER_COLUMNS}
                """, (
                    order.order_number, order.external_order_number,
                    Json(order.customer_info.model_dump(mode="json")),
                    _json_list(order.products),
                    Json(order.shipping_details.model_dump(mode="json")),
                    Json(order.totals.model_dump(mode="json")),
                    order.current_status, Json([history_entry.model_dump(mode="json")]),
                    order.current_status, order.payment_status, order.payment_method,
                    order.currency, order.notes,
                    order.woocommerce_store_id, order.woocommerce_order_id,
                    order.fulfillment_synced_at,
                    order.updated_at,
                    order_id, order.updated_at,
                ))
                row = cursor.fetchone()
                return Order(**row) if row else None
            finally:
                cursor.close()

    def update_status(self, order_id: int, status: str, comment: Optional[str] = None, conn=None) -> Optional[Order]:
        """
        Set current_status and append a status history entry

        Returns:
            Updated Order or None if the order does not exist
        """
        now = datetime.now(timezone.utc)
        entry = StatusHistoryEntry(status=status, timestamp=now, comment=comment)

        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    UPDATE orders SET
                        current_status = %s,
                        status_history = status_history || %s,
                        updated_at = %s
                    WHERE id = %s
                    RETURNING {ORDER_COLUMNS}
                """, (status, Json([entry.model_dump(mode="json")]), now, order_id))
                row = cursor.fetchone()
                return Order(**row) if row else None
            finally:
                cursor.close()

    def find_all(
        self,
        company_id: int,
        source: Optional[str] = None,
        status: Optional[str] = None,
        store_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
        conn=None
    ) -> Tuple[List[Order], int]:
        """
        Find a company's orders with filters

        Args:
            company_id: Tenant
            source: Filter by source (woocommerce, ...)
            status: Filter by current status
            store_id: Filter by WooCommerce store
            search: Search by order number or customer name/email
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            Tuple of (list of orders, total count)
        """
        conditions = ["company_id = %s"]
        params = [company_id]

        if source:
            conditions.append("source = %s")
            params.append(source)

        if status:
            conditions.append("current_status = %s")
            params.append(status)

        if store_id:
            conditions.append("woocommerce_store_id = %s")
            params.append(store_id)

        if search:
            conditions.append("""(
                order_number ILIKE %s OR
                customer_info->>'name' ILIKE %s OR
                customer_info->>'email' ILIKE %s
            )""")
            search_param = f"%{search}%"
            params.extend([search_param, search_param, search_param])

        where_clause = " AND ".join(conditions)

        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"SELECT COUNT(*) as total FROM orders WHERE {where_clause}", params)
                total = cursor.fetchone()['total']

                cursor.execute(f"""
                    SELECT {ORDER_COLUMNS}
                    FROM orders
                    WHERE {where_clause}
                    ORDER BY created_at DESC
                    LIMIT %s OFFSET %s
                """, params + [limit, offset])

                return [Order(**row) for row in cursor.fetchall()], total
            finally:
                cursor.close()

    def find_pending_fulfillment(self, store_id: int, limit: int = 100, conn=None) -> List[Order]:
        """Delivered WooCommerce orders whose status was never pushed back to the store"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    SELECT {ORDER_COLUMNS}
                    FROM orders
                    WHERE woocommerce_store_id = %s
                      AND source = 'woocommerce'
                      AND current_status = 'DELIVERED'
                      AND fulfillment_synced_at IS NULL
                    ORDER BY updated_at
                    LIMIT %s
                """, (store_id, limit))
                return [Order(**row) for row in cursor.fetchall()]
            finally:
                cursor.close()

    def mark_fulfillment_synced(self, order_id: int, conn=None) -> None:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "UPDATE orders SET fulfillment_synced_at = NOW() WHERE id = %s",
                    (order_id,)
                )
            finally:
                cursor.close()
