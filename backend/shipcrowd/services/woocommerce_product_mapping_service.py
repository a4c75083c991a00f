"""
WooCommerce Product Mapping Service

Links WooCommerce products and variations to internal SKUs:
- Auto-mapping by exact SKU (every product / variation of the store)
- Manual mappings, CSV import / export
- Mapping refresh from product webhooks

Author: TM3
Date: 2026-02-10
"""
import io
import logging
import math
from typing import Dict, Optional, Union

import pandas as pd

from shipcrowd.connectors.woocommerce_connector import WooCommerceAPIError
from shipcrowd.core.exceptions import AppError, ConflictError, NotFoundError, ValidationError
from shipcrowd.domain.product_mapping import ProductMapping, ProductMappingCreate, MappingType
from shipcrowd.domain.store import WooCommerceStore
from shipcrowd.domain.woocommerce import WooProduct, WooProductVariation
from shipcrowd.repositories.product_mapping_repository import ProductMappingRepository
from shipcrowd.repositories.store_repository import StoreRepository
from shipcrowd.services.woocommerce_store_service import build_connector

logger = logging.getLogger(__name__)


CSV_REQUIRED_HEADERS = ['woocommerce_product_id', 'woocommerce_sku', 'internal_sku']

CSV_EXPORT_FIELDS = [
    'woocommerce_product_id',
    'woocommerce_variation_id',
    'woocommerce_sku',
    'woocommerce_title',
    'internal_sku',
    'internal_product_name',
    'mapping_type',
    'sync_inventory',
    'sync_price',
    'is_active',
    'sync_errors',
    'last_sync_at',
]


def _new_result() -> Dict:
    return {'mapped': 0, 'skipped': 0, 'failed': 0, 'unmapped_skus': []}


class WooCommerceProductMappingService:
    """Service for WooCommerce product → internal SKU mappings"""

    def __init__(
        self,
        mapping_repo: ProductMappingRepository = None,
        store_repo: StoreRepository = None,
        connector_factory=None
    ):
        self.mapping_repo = mapping_repo or ProductMappingRepository()
        self.store_repo = store_repo or StoreRepository()
        self.connector_factory = connector_factory or build_connector

    def _get_store(self, store_id: int, company_id: Optional[int] = None) -> WooCommerceStore:
        store = self.store_repo.find_by_id(store_id, company_id=company_id)
        if not store:
            raise NotFoundError("WooCommerce store not found", "WOOCOMMERCE_STORE_NOT_FOUND")
        return store

    # =========================================================================
    # Auto-mapping
    # =========================================================================

    def _attempt_mapping(self, store: WooCommerceStore, product_id: int, variation_id: Optional[int],
                         sku: str, title: str, result: Dict) -> None:
        """Create an AUTO mapping (internal SKU = store SKU) unless one exists"""
        try:
            if self.mapping_repo.find_by_woocommerce_id(store.id, product_id, variation_id):
                result['skipped'] += 1
                return

            created = self.mapping_repo.create(
                company_id=store.company_id,
                store_id=store.id,
                product_id=product_id,
                variation_id=variation_id,
                woocommerce_sku=sku,
                woocommerce_title=title,
                internal_sku=sku,
                internal_product_name=title,
                mapping_type=MappingType.AUTO.value,
            )
            if created:
                result['mapped'] += 1
            else:
                result['skipped'] += 1

        except Exception as e:
            result['failed'] += 1
            result['unmapped_skus'].append(sku)
            logger.error(f"Failed to create WooCommerce mapping for SKU {sku} (store {store.id}): {e}")

    async def _map_product(self, store: WooCommerceStore, connector, product: WooProduct, result: Dict) -> None:
        if product.type == 'variable' and product.variations:
            for variation_id in product.variations:
                try:
                    variation = WooProductVariation.model_validate(
                        await connector.get(f"products/{product.id}/variations/{variation_id}")
                    )
                except WooCommerceAPIError as e:
                    logger.error(f"Failed to fetch variation {variation_id} of product {product.id}: {e}")
                    result['failed'] += 1
                    continue

                if not variation.sku:
                    result['skipped'] += 1
                    continue

                label = variation.attribute_label()
                title = f"{product.name} - {label}" if label else product.name
                self._attempt_mapping(store, product.id, variation_id, variation.sku, title, result)

        elif product.sku:
            self._attempt_mapping(store, product.id, None, product.sku, product.name, result)
        else:
            result['skipped'] += 1

    async def auto_map_products(self, store_id: int, company_id: Optional[int] = None) -> Dict:
        """
        Map every store product/variation whose SKU is set

        Returns:
            {mapped, skipped, failed, unmapped_skus}
        """
        store = self._get_store(store_id, company_id=company_id)
        connector = self.connector_factory(store)
        result = _new_result()

        logger.info(f"Starting WooCommerce auto-mapping for store {store_id}")

        try:
            products = await connector.get_all('products')
        except WooCommerceAPIError as e:
            raise e.as_app_error() from e
        logger.info(f"Fetched {len(products)} WooCommerce products for store {store_id}")

        for raw_product in products:
            await self._map_product(store, connector, WooProduct.model_validate(raw_product), result)

        if result['mapped']:
            self.store_repo.increment_stat(store_id, 'total_products_mapped', result['mapped'])

        logger.info(
            f"WooCommerce auto-mapping for store {store_id}: {result['mapped']} mapped, "
            f"{result['skipped']} skipped, {result['failed']} failed"
        )
        return result

    async def auto_map_product(self, store: WooCommerceStore, product: Union[WooProduct, Dict]) -> Dict:
        """Auto-map one product (product.created webhook)"""
        if not isinstance(product, WooProduct):
            product = WooProduct.model_validate(product)

        result = _new_result()
        await self._map_product(store, self.connector_factory(store), product, result)

        if result['mapped']:
            self.store_repo.increment_stat(store.id, 'total_products_mapped', result['mapped'])
        return result

    # =========================================================================
    # Manual mappings
    # =========================================================================

    def create_manual_mapping(self, store_id: int, company_id: int, data: ProductMappingCreate) -> ProductMapping:
        """
        Raises:
            NotFoundError: Store not found for this company
            ConflictError: 400 MAPPING_ALREADY_EXISTS
        """
        self._get_store(store_id, company_id=company_id)

        if self.mapping_repo.find_by_woocommerce_id(store_id, data.woocommerce_product_id,
                                                    data.woocommerce_variation_id):
            raise ConflictError("Mapping already exists for this product/variation", "MAPPING_ALREADY_EXISTS")

        mapping = self.mapping_repo.create(
            company_id=company_id,
            store_id=store_id,
            product_id=data.woocommerce_product_id,
            variation_id=data.woocommerce_variation_id,
            woocommerce_sku=data.woocommerce_sku,
            woocommerce_title=data.woocommerce_title,
            internal_sku=data.internal_sku,
            internal_product_name=data.internal_product_name,
            mapping_type=MappingType.MANUAL.value,
            sync_inventory=data.sync_inventory,
            sync_price=data.sync_price,
            sync_on_fulfillment=data.sync_on_fulfillment,
        )
        if not mapping:
            raise ConflictError("Mapping already exists for this product/variation", "MAPPING_ALREADY_EXISTS")

        logger.info(
            f"Manual WooCommerce mapping {mapping.id} created: {data.woocommerce_sku} → {data.internal_sku}"
        )
        return mapping

    def delete_mapping(self, mapping_id: int, company_id: int) -> None:
        if not self.mapping_repo.delete(mapping_id, company_id):
            raise NotFoundError("Mapping not found", "MAPPING_NOT_FOUND")
        logger.info(f"WooCommerce mapping {mapping_id} deleted")

    def toggle_mapping_status(self, mapping_id: int, company_id: int, is_active: bool) -> ProductMapping:
        mapping = self.mapping_repo.set_active(mapping_id, company_id, is_active)
        if not mapping:
            raise NotFoundError("Mapping not found", "MAPPING_NOT_FOUND")
        logger.info(f"WooCommerce mapping {mapping_id} {'activated' if is_active else 'deactivated'}")
        return mapping

    def get_mappings(
        self,
        company_id: int,
        store_id: Optional[int] = None,
        mapping_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> Dict:
        """
        Returns:
            {mappings, total, page, pages}
        """
        page = max(page, 1)
        mappings, total = self.mapping_repo.find_all(
            company_id,
            store_id=store_id,
            mapping_type=mapping_type,
            is_active=is_active,
            search=search,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return {
            'mappings': mappings,
            'total': total,
            'page': page,
            'pages': math.ceil(total / limit) if limit else 0,
        }

    def get_mapping_stats(self, store_id: int, company_id: Optional[int] = None) -> Dict:
        self._get_store(store_id, company_id=company_id)
        return self.mapping_repo.get_stats(store_id)

    # =========================================================================
    # CSV
    # =========================================================================

    def import_mappings_from_csv(self, store_id: int, company_id: int, csv_data: str) -> Dict:
        """
        Create manual mappings from CSV

        Required headers: woocommerce_product_id, woocommerce_sku, internal_sku.
        Optional: woocommerce_variation_id, woocommerce_title,
        internal_product_name, sync_inventory.

        Returns:
            {imported, failed, errors: ["Row N: ..."]} where N is the line number

        Raises:
            ValidationError: 400 INVALID_CSV_FORMAT
        """
        self._get_store(store_id, company_id=company_id)

        try:
            df = pd.read_csv(io.StringIO(csv_data), dtype=str, keep_default_na=False, skipinitialspace=True)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ValidationError(f"Error reading CSV: {e}", "INVALID_CSV_FORMAT")

        df.columns = [str(c).strip() for c in df.columns]
        for header in CSV_REQUIRED_HEADERS:
            if header not in df.columns:
                raise ValidationError(f"Missing required header: {header}", "INVALID_CSV_FORMAT")

        result = {'imported': 0, 'failed': 0, 'errors': []}

        for index, row in df.iterrows():
            line_number = index + 2  # header is line 1
            values = {k: str(v).strip() for k, v in row.items()}
            try:
                data = ProductMappingCreate(
                    woocommerce_product_id=int(values['woocommerce_product_id']),
                    woocommerce_variation_id=int(values['woocommerce_variation_id'])
                    if values.get('woocommerce_variation_id') else None,
                    woocommerce_sku=values['woocommerce_sku'],
                    woocommerce_title=values.get('woocommerce_title') or values['woocommerce_sku'],
                    internal_sku=values['internal_sku'],
                    internal_product_name=values.get('internal_product_name') or None,
                    sync_inventory=values.get('sync_inventory', '').lower() != 'false',
                )
                self.create_manual_mapping(store_id, company_id, data)
                result['imported'] += 1
            except AppError as e:
                result['failed'] += 1
                result['errors'].append(f"Row {line_number}: {e.message}")
            except ValueError as e:
                # int() and pydantic validation errors
                result['failed'] += 1
                result['errors'].append(f"Row {line_number}: {e}")

        logger.info(
            f"WooCommerce CSV import for store {store_id}: {result['imported']} imported, {result['failed']} failed"
        )
        return result

    def export_mappings_to_csv(self, store_id: int, company_id: int) -> str:
        mappings = self.mapping_repo.find_all_for_store(store_id, company_id)

        rows = [m.model_dump(mode="json", include=set(CSV_EXPORT_FIELDS)) for m in mappings]
        # object dtype keeps variation ids as ints next to empty cells
        csv_text = pd.DataFrame(rows, columns=CSV_EXPORT_FIELDS, dtype=object).to_csv(index=False)

        logger.info(f"Exported {len(mappings)} WooCommerce mappings for store {store_id}")
        return csv_text

    # =========================================================================
    # Webhook helpers
    # =========================================================================

    def update_from_product(self, store: WooCommerceStore, product: Union[WooProduct, Dict]) -> int:
        """
        Refresh SKU / title of existing mappings from a product.updated body

        Variations are not part of product webhooks; only the parent
        product's mapping is refreshed.

        Returns:
            Number of mappings updated
        """
        if not isinstance(product, WooProduct):
            product = WooProduct.model_validate(product)

        if not product.sku:
            return 0

        updated = self.mapping_repo.update_product_details(
            store.id, product.id, None, product.sku, product.name or None
        )
        if updated:
            logger.info(f"Refreshed {updated} WooCommerce mapping(s) for product {product.id} (store {store.id})")
        return updated

    def deactivate_product(self, store: WooCommerceStore, product_id: int) -> int:
        deactivated = self.mapping_repo.deactivate_product(store.id, product_id)
        if deactivated:
            logger.info(f"Deactivated {deactivated} WooCommerce mapping(s) for deleted product {product_id}")
        return deactivated
