"""
WooCommerce Store Repository

Data access for connected WooCommerce stores. Credentials are stored and
returned encrypted; decryption happens in the store service.

Author: TM3
Date: 2026-02-09
"""
from typing import List, Optional, Dict, Any

from psycopg2.extras import Json

from shipcrowd.domain.store import WooCommerceStore, SyncConfig, WebhookRegistration
from shipcrowd.core.database import connection_scope


STORE_COLUMNS = """
    id, company_id, store_url, store_name, consumer_key, consumer_secret,
    api_version, wp_version, wc_version, currency, timezone,
    is_active, is_paused, installed_at, uninstalled_at,
    sync_config, webhooks, stats, created_at, updated_at
"""

# Columns update_fields() may write
UPDATABLE_FIELDS = {
    "store_name", "consumer_key", "consumer_secret", "api_version",
    "wp_version", "wc_version", "currency", "timezone",
    "is_active", "is_paused", "installed_at", "uninstalled_at",
}

# Stats counters increment_stat() may bump
STAT_FIELDS = {"total_orders_synced", "total_products_mapped", "total_inventory_syncs"}


class StoreRepository:
    """Repository for WooCommerce store connections"""

    def create(
        self,
        company_id: int,
        store_url: str,
        consumer_key: str,
        consumer_secret: str,
        store_name: Optional[str] = None,
        api_version: str = "wc/v3",
        wp_version: Optional[str] = None,
        wc_version: Optional[str] = None,
        currency: Optional[str] = None,
        timezone: Optional[str] = None,
        sync_config: Optional[SyncConfig] = None,
        conn=None
    ) -> WooCommerceStore:
        """Insert an active store; consumer_key / consumer_secret must already be encrypted"""
        sync_config = sync_config or SyncConfig()

        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    INSERT INTO woocommerce_stores (
                        company_id, store_url, store_name, consumer_key, consumer_secret,
                        api_version, wp_version, wc_version, currency, timezone,
                        is_active, is_paused, installed_at,
                        sync_config, webhooks, stats
                    ) VALUES (
                        %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s,
                        TRUE, FALSE, NOW(),
                        %s, '[]'::jsonb, %s
                    )
                    RETURNING {STORE_COLUMNS}
                """, (
                    company_id, store_url, store_name, consumer_key, consumer_secret,
                    api_version, wp_version, wc_version, currency, timezone,
                    Json(sync_config.model_dump(mode="json")),
                    Json({"total_orders_synced": 0, "total_products_mapped": 0, "total_inventory_syncs": 0}),
                ))
                return WooCommerceStore(**cursor.fetchone())
            finally:
                cursor.close()

    def find_by_id(self, store_id: int, company_id: Optional[int] = None, conn=None) -> Optional[WooCommerceStore]:
        """
        Find store by ID

        Args:
            store_id: Store ID
            company_id: When given, the store must belong to this company
        """
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                query = f"SELECT {STORE_COLUMNS} FROM woocommerce_stores WHERE id = %s"
                params = [store_id]
                if company_id is not None:
                    query += " AND company_id = %s"
                    params.append(company_id)

                cursor.execute(query, params)
                row = cursor.fetchone()
                return WooCommerceStore(**row) if row else None
            finally:
                cursor.close()

    def find_by_company_and_url(self, company_id: int, store_url: str, active_only: bool = False,
                                conn=None) -> Optional[WooCommerceStore]:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                query = f"""
                    SELECT {STORE_COLUMNS}
                    FROM woocommerce_stores
                    WHERE company_id = %s AND store_url = %s
                """
                if active_only:
                    query += " AND is_active = TRUE"
                cursor.execute(query, (company_id, store_url))
                row = cursor.fetchone()
                return WooCommerceStore(**row) if row else None
            finally:
                cursor.close()

    def find_active_by_url(self, store_url: str, conn=None) -> List[WooCommerceStore]:
        """
        Active stores with this URL, across companies

        Used by webhook ingestion, where only the delivering site's URL is
        known. Several tenants may connect the same site.
        """
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    SELECT {STORE_COLUMNS}
                    FROM woocommerce_stores
                    WHERE store_url = %s AND is_active = TRUE
                    ORDER BY id
                """, (store_url,))
                return [WooCommerceStore(**row) for row in cursor.fetchall()]
            finally:
                cursor.close()

    def find_active(self, company_id: Optional[int] = None, conn=None) -> List[WooCommerceStore]:
        """Active stores, for one company or for all of them"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                query = f"SELECT {STORE_COLUMNS} FROM woocommerce_stores WHERE is_active = TRUE"
                params = []
                if company_id is not None:
                    query += " AND company_id = %s"
                    params.append(company_id)
                query += " ORDER BY id"

                cursor.execute(query, params)
                return [WooCommerceStore(**row) for row in cursor.fetchall()]
            finally:
                cursor.close()

    def update_fields(self, store_id: int, fields: Dict[str, Any], conn=None) -> Optional[WooCommerceStore]:
        """
        Update plain columns of a store

        Raises:
            ValueError: If a field is not updatable
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update store fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self.find_by_id(store_id, conn=conn)

        assignments = ", ".join(f"{name} = %s" for name in fields)
        params = list(fields.values()) + [store_id]

        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    UPDATE woocommerce_stores
                    SET {assignments}, updated_at = NOW()
                    WHERE id = %s
                    RETURNING {STORE_COLUMNS}
                """, params)
                row = cursor.fetchone()
                return WooCommerceStore(**row) if row else None
            finally:
                cursor.close()

    def update_sync_config(self, store_id: int, sync_config: SyncConfig, conn=None) -> None:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    UPDATE woocommerce_stores
                    SET sync_config = %s, updated_at = NOW()
                    WHERE id = %s
                """, (Json(sync_config.model_dump(mode="json")), store_id))
            finally:
                cursor.close()

    def update_order_sync_state(self, store_id: int, sync_status: str, last_sync_at=None,
                                reset_errors: bool = False, increment_errors: bool = False,
                                conn=None) -> None:
        """
        Update sync_config.order_sync in place

        Only the keys given change, so a concurrent settings edit of the
        rest of sync_config is not overwritten.
        """
        patch = {"sync_status": sync_status}
        if last_sync_at is not None:
            patch["last_sync_at"] = last_sync_at.isoformat()
        if reset_errors:
            patch["error_count"] = 0

        error_expr = "0"
        if increment_errors:
            error_expr = "COALESCE((sync_config->'order_sync'->>'error_count')::int, 0) + 1"
        elif not reset_errors:
            error_expr = "COALESCE((sync_config->'order_sync'->>'error_count')::int, 0)"

        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    UPDATE woocommerce_stores
                    SET sync_config = jsonb_set(
                            sync_config,
                            '{{order_sync}}',
                            (COALESCE(sync_config->'order_sync', '{{}}'::jsonb) || %s)
                                || jsonb_build_object('error_count', {error_expr})
                        ),
                        updated_at = NOW()
                    WHERE id = %s
                """, (Json(patch), store_id))
            finally:
                cursor.close()

    def set_webhooks(self, store_id: int, webhooks: List[WebhookRegistration], conn=None) -> None:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    UPDATE woocommerce_stores
                    SET webhooks = %s, updated_at = NOW()
                    WHERE id = %s
                """, (Json([w.model_dump(mode="json") for w in webhooks]), store_id))
            finally:
                cursor.close()

    def increment_stat(self, store_id: int, stat: str, amount: int, conn=None) -> None:
        """Atomically add amount to one of the store's stats counters"""
        if stat not in STAT_FIELDS:
            raise ValueError(f"Unknown store stat: {stat}")

        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    UPDATE woocommerce_stores
                    SET stats = jsonb_set(
                        stats,
                        '{{{stat}}}',
                        to_jsonb(COALESCE((stats->>'{stat}')::int, 0) + %s)
                    )
                    WHERE id = %s
                """, (amount, store_id))
            finally:
                cursor.close()
