"""
Product Mapping Repository

Data access for WooCommerce product → internal SKU mappings.

Simple products are stored with woocommerce_variation_id = 0 so the
(store, product, variation) unique constraint also covers them; the domain
model exposes that as None.

Author: TM3
Date: 2026-02-10
"""
from typing import List, Optional, Tuple, Dict

from shipcrowd.domain.product_mapping import ProductMapping
from shipcrowd.core.database import connection_scope


MAPPING_COLUMNS = """
    id, company_id, woocommerce_store_id, woocommerce_product_id, woocommerce_variation_id,
    woocommerce_sku, woocommerce_title, internal_sku, internal_product_name,
    mapping_type, sync_inventory, sync_price, sync_on_fulfillment, is_active,
    sync_errors, last_sync_at, created_at, updated_at
"""


def _to_mapping(row) -> ProductMapping:
    data = dict(row)
    if not data.get('woocommerce_variation_id'):
        data['woocommerce_variation_id'] = None
    return ProductMapping(**data)


class ProductMappingRepository:
    """Repository for WooCommerce product mappings"""

    def find_by_woocommerce_id(
        self,
        store_id: int,
        product_id: int,
        variation_id: Optional[int] = None,
        conn=None
    ) -> Optional[ProductMapping]:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    SELECT {MAPPING_COLUMNS}
                    FROM woocommerce_product_mappings
                    WHERE woocommerce_store_id = %s
                      AND woocommerce_product_id = %s
                      AND woocommerce_variation_id = %s
                """, (store_id, product_id, variation_id or 0))
                row = cursor.fetchone()
                return _to_mapping(row) if row else None
            finally:
                cursor.close()

    def get_active_sku_map(self, store_id: int, conn=None) -> Dict[Tuple[int, int], str]:
        """
        Internal SKUs used when importing orders

        Returns:
            {(product_id, variation_id or 0): internal_sku} for active
            mappings with sync_on_fulfillment enabled
        """
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    SELECT woocommerce_product_id, woocommerce_variation_id, internal_sku
                    FROM woocommerce_product_mappings
                    WHERE woocommerce_store_id = %s
                      AND is_active = TRUE
                      AND sync_on_fulfillment = TRUE
                """, (store_id,))
                return {
                    (row['woocommerce_product_id'], row['woocommerce_variation_id'] or 0): row['internal_sku']
                    for row in cursor.fetchall()
                }
            finally:
                cursor.close()

    def create(
        self,
        company_id: int,
        store_id: int,
        product_id: int,
        woocommerce_sku: str,
        internal_sku: str,
        variation_id: Optional[int] = None,
        woocommerce_title: Optional[str] = None,
        internal_product_name: Optional[str] = None,
        mapping_type: str = "AUTO",
        sync_inventory: bool = True,
        sync_price: bool = False,
        sync_on_fulfillment: bool = True,
        conn=None
    ) -> Optional[ProductMapping]:
        """
        Insert a mapping

        Returns:
            The mapping, or None if the product/variation is already mapped
        """
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    INSERT INTO woocommerce_product_mappings (
                        company_id, woocommerce_store_id, woocommerce_product_id, woocommerce_variation_id,
                        woocommerce_sku, woocommerce_title, internal_sku, internal_product_name,
                        mapping_type, sync_inventory, sync_price, sync_on_fulfillment, is_active
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, TRUE)
                    ON CONFLICT (woocommerce_store_id, woocommerce_product_id, woocommerce_variation_id)
                    DO NOTHING
                    RETURNING {MAPPING_COLUMNS}
                """, (
                    company_id, store_id, product_id, variation_id or 0,
                    woocommerce_sku, woocommerce_title, internal_sku, internal_product_name,
                    mapping_type, sync_inventory, sync_price, sync_on_fulfillment,
                ))
                row = cursor.fetchone()
                return _to_mapping(row) if row else None
            finally:
                cursor.close()

    def delete(self, mapping_id: int, company_id: int, conn=None) -> bool:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "DELETE FROM woocommerce_product_mappings WHERE id = %s AND company_id = %s",
                    (mapping_id, company_id)
                )
                return cursor.rowcount > 0
            finally:
                cursor.close()

    def set_active(self, mapping_id: int, company_id: int, is_active: bool, conn=None) -> Optional[ProductMapping]:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    UPDATE woocommerce_product_mappings
                    SET is_active = %s, updated_at = NOW()
                    WHERE id = %s AND company_id = %s
                    RETURNING {MAPPING_COLUMNS}
                """, (is_active, mapping_id, company_id))
                row = cursor.fetchone()
                return _to_mapping(row) if row else None
            finally:
                cursor.close()

    def find_all(
        self,
        company_id: int,
        store_id: Optional[int] = None,
        mapping_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
        conn=None
    ) -> Tuple[List[ProductMapping], int]:
        """
        Find mappings with filters

        Args:
            search: Matches WooCommerce SKU, internal SKU or product title

        Returns:
            Tuple of (list of mappings, total count)
        """
        conditions = ["company_id = %s"]
        params = [company_id]

        if store_id:
            conditions.append("woocommerce_store_id = %s")
            params.append(store_id)

        if mapping_type:
            conditions.append("mapping_type = %s")
            params.append(mapping_type)

        if is_active is not None:
            conditions.append("is_active = %s")
            params.append(is_active)

        if search:
            conditions.append("(woocommerce_sku ILIKE %s OR internal_sku ILIKE %s OR woocommerce_title ILIKE %s)")
            search_param = f"%{search}%"
            params.extend([search_param, search_param, search_param])

        where_clause = " AND ".join(conditions)

        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    f"SELECT COUNT(*) as total FROM woocommerce_product_mappings WHERE {where_clause}",
                    params
                )
                total = cursor.fetchone()['total']

                cursor.execute(f"""
                    SELECT {MAPPING_COLUMNS}
                    FROM woocommerce_product_mappings
                    WHERE {where_clause}
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s OFFSET %s
                """, params + [limit, offset])

                return [_to_mapping(row) for row in cursor.fetchall()], total
            finally:
                cursor.close()

    def find_all_for_store(self, store_id: int, company_id: int, conn=None) -> List[ProductMapping]:
        """Every mapping of a store, oldest first (CSV export)"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    SELECT {MAPPING_COLUMNS}
                    FROM woocommerce_product_mappings
                    WHERE woocommerce_store_id = %s AND company_id = %s
                    ORDER BY id
                """, (store_id, company_id))
                return [_to_mapping(row) for row in cursor.fetchall()]
            finally:
                cursor.close()

    def get_stats(self, store_id: int, conn=None) -> dict:
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    SELECT
                        COUNT(*) as total,
                        COUNT(*) FILTER (WHERE is_active) as active,
                        COUNT(*) FILTER (WHERE mapping_type = 'AUTO') as auto,
                        COUNT(*) FILTER (WHERE mapping_type = 'MANUAL') as manual,
                        COUNT(*) FILTER (WHERE sync_inventory) as sync_inventory
                    FROM woocommerce_product_mappings
                    WHERE woocommerce_store_id = %s
                """, (store_id,))
                row = cursor.fetchone()
                return {
                    'total': row['total'],
                    'active': row['active'],
                    'inactive': row['total'] - row['active'],
                    'auto': row['auto'],
                    'manual': row['manual'],
                    'sync_inventory': row['sync_inventory'],
                }
            finally:
                cursor.close()

    def update_product_details(
        self,
        store_id: int,
        product_id: int,
        variation_id: Optional[int],
        woocommerce_sku: str,
        woocommerce_title: Optional[str],
        conn=None
    ) -> int:
        """
        Refresh SKU/title of an existing mapping from the store's product data

        Returns:
            Number of mappings updated
        """
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    UPDATE woocommerce_product_mappings
                    SET woocommerce_sku = %s,
                        woocommerce_title = COALESCE(%s, woocommerce_title),
                        last_sync_at = NOW(),
                        updated_at = NOW()
                    WHERE woocommerce_store_id = %s
                      AND woocommerce_product_id = %s
                      AND woocommerce_variation_id = %s
                """, (woocommerce_sku, woocommerce_title, store_id, product_id, variation_id or 0))
                return cursor.rowcount
            finally:
                cursor.close()

    def deactivate_product(self, store_id: int, product_id: int, conn=None) -> int:
        """Deactivate every mapping of a product (and its variations)"""
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    UPDATE woocommerce_product_mappings
                    SET is_active = FALSE, updated_at = NOW()
                    WHERE woocommerce_store_id = %s AND woocommerce_product_id = %s
                """, (store_id, product_id))
                return cursor.rowcount
            finally:
                cursor.close()
