"""
WooCommerce Order Sync Service - imports store orders into Shipcrowd

Handles:
- Bulk sync of all (or recently modified) orders with one sync log per run
- Single-order sync and webhook upserts
- Status updates / cancellation coming from the store

Upserts are idempotent: orders are keyed by (company_id, 'woocommerce',
WooCommerce order ID) and an incoming order only overwrites the stored one
when its date_modified is newer (last write wins).

A bulk sync runs every order upsert inside one transaction, each order in
its own SAVEPOINT, so a failing order is rolled back and counted while the
rest of the run still commits. The sync log is written on separate
connections so it survives a rolled-back run.

Author: TM3
Date: 2026-02-10
"""
import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple, Union

from shipcrowd.connectors.woocommerce_connector import WooCommerceAPIError
from shipcrowd.core.config import settings
from shipcrowd.core.database import get_db_connection_dict, connection_scope
from shipcrowd.core.exceptions import AppError, NotFoundError
from shipcrowd.domain.order import (
    Order, OrderData, CustomerInfo, Address, OrderProduct, ShippingDetails, OrderTotals,
    StatusHistoryEntry, OrderStatus,
)
from shipcrowd.domain.store import WooCommerceStore, SyncLogStatus, SyncStatus
from shipcrowd.domain.woocommerce import WooOrder, parse_amount, parse_woo_datetime
from shipcrowd.repositories.order_repository import OrderRepository
from shipcrowd.repositories.store_repository import StoreRepository
from shipcrowd.repositories.sync_log_repository import SyncLogRepository
from shipcrowd.repositories.product_mapping_repository import ProductMappingRepository
from shipcrowd.repositories.company_repository import CompanyRepository
from shipcrowd.services.status_mapping import (
    map_order_status, map_payment_status, detect_payment_method,
)
from shipcrowd.services.woocommerce_store_service import build_connector

logger = logging.getLogger(__name__)

SOURCE = "woocommerce"


# ============================================================================
# Result Models
# ============================================================================

@dataclass
class SyncResult:
    success: bool
    store_id: int
    sync_log_id: Optional[int] = None
    items_synced: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    orders_created: int = 0
    orders_updated: int = 0
    errors: List[Dict] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def status(self) -> str:
        if self.items_failed == 0:
            return SyncLogStatus.COMPLETED.value
        if self.items_synced or self.items_skipped:
            return SyncLogStatus.PARTIAL.value
        return SyncLogStatus.FAILED.value


# ============================================================================
# Field mapping
# ============================================================================

def _order_number(woo_order: WooOrder) -> str:
    return f"WOO-{woo_order.display_number}"


def _line_item_sku(item, sku_map: Dict[Tuple[int, int], str]) -> str:
    """Mapped internal SKU, else the store's SKU, else WOO-<product>-<variation>"""
    key = (item.product_id, item.variation_id or 0)
    if key in sku_map:
        return sku_map[key]
    return item.sku or f"WOO-{item.product_id}-{item.variation_id or 0}"


def map_woocommerce_order(
    woo_order: Union[WooOrder, Dict],
    store: WooCommerceStore,
    sku_map: Optional[Dict[Tuple[int, int], str]] = None
) -> OrderData:
    """
    Translate a WooCommerce order into Shipcrowd order fields

    Args:
        woo_order: Order from the REST API or a webhook body
        store: Store the order belongs to
        sku_map: {(product_id, variation_id or 0): internal_sku} from product mappings

    Returns:
        OrderData ready to create or overwrite an order
    """
    if not isinstance(woo_order, WooOrder):
        woo_order = WooOrder.model_validate(woo_order)
    sku_map = sku_map or {}

    # billing/shipping are null for some digital products and gift cards
    billing = woo_order.billing
    shipping = woo_order.shipping

    def pick(name):
        for source in (shipping, billing):
            value = getattr(source, name, None) if source else None
            if value:
                return value
        return None

    first_name = (billing.first_name or '') if billing else ''
    last_name = (billing.last_name or '') if billing else ''
    customer_name = f"{first_name} {last_name}".strip() or "No customer"

    has_address = bool(pick('address_1') or pick('city'))

    address = Address(
        line1=pick('address_1') or ('' if has_address else 'No address provided'),
        line2=pick('address_2'),
        city=pick('city') or ('' if has_address else 'Unknown'),
        state=pick('state') or ('' if has_address else 'Unknown'),
        country=pick('country') or ('' if has_address else 'Unknown'),
        postal_code=pick('postcode') or ('' if has_address else '000000'),
    )

    products = [
        OrderProduct(
            name=item.name or f"Product {item.product_id}",
            sku=_line_item_sku(item, sku_map),
            woocommerce_sku=item.sku or None,
            quantity=max(item.quantity, 0),
            price=parse_amount(item.price),
            weight=0.0,
            image_url=item.image.src if item.image else '',
        )
        for item in woo_order.line_items
    ]

    first_shipping_line = woo_order.shipping_lines[0] if woo_order.shipping_lines else None

    total = parse_amount(woo_order.total)
    tax = parse_amount(woo_order.total_tax)
    shipping_total = parse_amount(woo_order.shipping_total)

    now = datetime.now(timezone.utc)
    created_at = parse_woo_datetime(woo_order.date_created_gmt, woo_order.date_created) or now
    updated_at = parse_woo_datetime(woo_order.date_modified_gmt, woo_order.date_modified) or created_at

    current_status = map_order_status(woo_order.status)

    return OrderData(
        company_id=store.company_id,
        order_number=_order_number(woo_order),
        source=SOURCE,
        source_id=str(woo_order.id),
        external_order_number=woo_order.display_number,
        customer_info=CustomerInfo(
            name=customer_name,
            email=(billing.email or None) if billing else None,
            phone=(billing.phone or None) if billing else None,
            address=address,
        ),
        products=products,
        shipping_details=ShippingDetails(
            shipping_cost=shipping_total,
            provider=(first_shipping_line.method_title if first_shipping_line else None) or "Standard Shipping",
            shipping_method=(first_shipping_line.method_id if first_shipping_line else None) or "flat_rate",
        ),
        payment_status=map_payment_status(woo_order.status),
        payment_method=detect_payment_method(woo_order.payment_method),
        currency=woo_order.currency or "USD",
        current_status=current_status,
        totals=OrderTotals(
            subtotal=total - tax,
            tax=tax,
            shipping=shipping_total,
            discount=parse_amount(woo_order.discount_total),
            total=total,
        ),
        notes=woo_order.customer_note or '',
        tags=[],
        status_history=[
            StatusHistoryEntry(
                status=current_status,
                timestamp=created_at,
                comment=f"Order imported from WooCommerce ({woo_order.status})",
            )
        ],
        woocommerce_store_id=store.id,
        woocommerce_order_id=woo_order.id,
        fulfillment_synced_at=updated_at if (woo_order.status or "").lower() == "completed" else None,
        created_at=created_at,
        updated_at=updated_at,
    )


# ============================================================================
# Order Sync Service
# ============================================================================

class WooCommerceOrderSyncService:
    """Service for importing WooCommerce orders"""

    def __init__(
        self,
        order_repo: OrderRepository = None,
        store_repo: StoreRepository = None,
        sync_log_repo: SyncLogRepository = None,
        mapping_repo: ProductMappingRepository = None,
        company_repo: CompanyRepository = None,
        connector_factory=None
    ):
        self.order_repo = order_repo or OrderRepository()
        self.store_repo = store_repo or StoreRepository()
        self.sync_log_repo = sync_log_repo or SyncLogRepository()
        self.mapping_repo = mapping_repo or ProductMappingRepository()
        self.company_repo = company_repo or CompanyRepository()
        self.connector_factory = connector_factory or build_connector

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_active_store(self, store_id: int, company_id: Optional[int] = None) -> WooCommerceStore:
        store = self.store_repo.find_by_id(store_id, company_id=company_id)
        if not store:
            raise NotFoundError("WooCommerce store not found", "WOOCOMMERCE_STORE_NOT_FOUND")
        if not store.is_active:
            raise AppError("WooCommerce store is not active", "WOOCOMMERCE_STORE_INACTIVE", 400)
        return store

    def _default_warehouse_id(self, company_id: int) -> Optional[int]:
        try:
            return self.company_repo.get_default_warehouse_id(company_id)
        except Exception as e:
            logger.warning(f"Failed to read default warehouse for company {company_id}: {e}")
            return None

    def _upsert(self, store: WooCommerceStore, woo_order: WooOrder, sku_map, conn,
                warehouse_lookup) -> Tuple[str, Order]:
        """
        Create or update one order on the given connection

        Returns:
            ('created' | 'updated' | 'skipped', order)
        """
        data = map_woocommerce_order(woo_order, store, sku_map)
        existing = self.order_repo.find_by_woocommerce_order_id(store.company_id, woo_order.id, conn=conn)

        if existing:
            if existing.updated_at and existing.updated_at >= data.updated_at:
                return 'skipped', existing
            updated = self.order_repo.update_from_channel(existing.id, data, conn=conn)
            return ('updated', updated) if updated else ('skipped', existing)

        if data.warehouse_id is None:
            data.warehouse_id = warehouse_lookup()

        created = self.order_repo.create(data, conn=conn)
        if created:
            return 'created', created

        # Inserted concurrently (webhook racing a bulk sync)
        existing = self.order_repo.find_by_woocommerce_order_id(store.company_id, woo_order.id, conn=conn)
        updated = self.order_repo.update_from_channel(existing.id, data, conn=conn)
        return ('updated', updated) if updated else ('skipped', existing)

    # =========================================================================
    # Bulk sync
    # =========================================================================

    async def sync_orders(self, store_id: int, since: Optional[datetime] = None,
                          sync_log_id: Optional[int] = None) -> SyncResult:
        """
        Import every order of a store (optionally only those modified after `since`)

        Args:
            store_id: WooCommerce store ID
            since: Only fetch orders created after this time
            sync_log_id: Existing IN_PROGRESS log to use (API pre-creates it)

        Returns:
            SyncResult with counts and per-order errors

        Raises:
            NotFoundError: Store does not exist
            AppError: Store is inactive, or the run failed as a whole
        """
        start_time = time.time()
        store = self._get_active_store(store_id)

        if sync_log_id is None:
            sync_log_id = self.sync_log_repo.create(store_id, 'ORDERS').id
        result = SyncResult(success=True, store_id=store_id, sync_log_id=sync_log_id)

        if store.is_paused:
            logger.info(f"WooCommerce store {store_id} is paused, skipping order sync")
            self.sync_log_repo.complete(sync_log_id, SyncLogStatus.COMPLETED.value)
            return result

        self.store_repo.update_order_sync_state(store_id, SyncStatus.IN_PROGRESS.value)

        params = {'orderby': 'date', 'order': 'desc'}
        if since:
            params['after'] = since.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S')
            params['dates_are_gmt'] = 'true'

        warehouse = {}

        def warehouse_lookup():
            if 'id' not in warehouse:
                warehouse['id'] = self._default_warehouse_id(store.company_id)
            return warehouse['id']

        conn = get_db_connection_dict()
        try:
            sku_map = self.mapping_repo.get_active_sku_map(store_id)
            connector = self.connector_factory(store)

            async for page in connector.paginate('orders', params=params):
                logger.info(f"Processing {len(page)} WooCommerce orders for store {store_id}")

                for raw_order in page:
                    woo_order_id = raw_order.get('id') if isinstance(raw_order, dict) else None
                    cursor = conn.cursor()
                    try:
                        cursor.execute("SAVEPOINT woo_order")
                        action, _ = self._upsert(
                            store, WooOrder.model_validate(raw_order), sku_map, conn, warehouse_lookup
                        )
                        cursor.execute("RELEASE SAVEPOINT woo_order")

                        if action == 'skipped':
                            result.items_skipped += 1
                        else:
                            result.items_synced += 1
                            if action == 'created':
                                result.orders_created += 1
                            else:
                                result.orders_updated += 1

                    except Exception as e:
                        cursor.execute("ROLLBACK TO SAVEPOINT woo_order")
                        result.items_failed += 1
                        result.errors.append({'order_id': woo_order_id, 'error': str(e)})
                        logger.error(f"Failed to sync WooCommerce order {woo_order_id} for store {store_id}: {e}")
                    finally:
                        cursor.close()

            conn.commit()

        except Exception as e:
            conn.rollback()
            logger.error(f"WooCommerce order sync failed for store {store_id}: {e}")
            try:
                self.sync_log_repo.fail(sync_log_id, str(e))
                self.store_repo.update_order_sync_state(store_id, SyncStatus.FAILED.value, increment_errors=True)
            except Exception as log_error:
                logger.error(f"Failed to record sync failure for store {store_id}: {log_error}")
            raise
        finally:
            conn.close()

        result.success = result.status != SyncLogStatus.FAILED.value
        result.duration_seconds = round(time.time() - start_time, 2)

        self.sync_log_repo.complete(
            sync_log_id,
            result.status,
            items_synced=result.items_synced,
            items_skipped=result.items_skipped,
            items_failed=result.items_failed,
            errors=[f"Order {err['order_id']}: {err['error']}" for err in result.errors],
        )
        self.store_repo.update_order_sync_state(
            store_id, SyncStatus.COMPLETED.value, last_sync_at=datetime.now(timezone.utc), reset_errors=True
        )
        if result.items_synced:
            self.store_repo.increment_stat(store_id, 'total_orders_synced', result.items_synced)

        logger.info(
            f"WooCommerce order sync for store {store_id} finished ({result.status}): "
            f"{result.items_synced} synced, {result.items_skipped} skipped, "
            f"{result.items_failed} failed in {result.duration_seconds}s"
        )
        return result

    async def sync_recent_orders(self, store_id: int, hours_back: Optional[int] = None,
                                 sync_log_id: Optional[int] = None) -> SyncResult:
        """Sync orders created in the last `hours_back` hours (default from settings)"""
        hours_back = hours_back or settings.WOOCOMMERCE_RECENT_SYNC_HOURS
        since = datetime.now(timezone.utc) - timedelta(hours=hours_back)
        return await self.sync_orders(store_id, since=since, sync_log_id=sync_log_id)

    async def sync_all_active_stores(self, hours_back: Optional[int] = None) -> List[Dict]:
        """
        Recent-order sync for every active, unpaused store with auto sync on

        A failing store is reported and does not stop the others.

        Returns:
            One summary dict per store attempted
        """
        summaries = []

        for store in self.store_repo.find_active():
            order_sync = store.sync_config.order_sync
            if store.is_paused or not order_sync.enabled or not order_sync.auto_sync:
                continue

            try:
                result = await self.sync_recent_orders(store.id, hours_back=hours_back)
                summaries.append({
                    'store_id': store.id,
                    'success': result.success,
                    'status': result.status,
                    'sync_log_id': result.sync_log_id,
                    'items_synced': result.items_synced,
                    'items_skipped': result.items_skipped,
                    'items_failed': result.items_failed,
                })
            except Exception as e:
                logger.error(f"Scheduled WooCommerce sync failed for store {store.id}: {e}")
                summaries.append({
                    'store_id': store.id,
                    'success': False,
                    'status': SyncLogStatus.FAILED.value,
                    'error': str(e),
                })

        return summaries

    # =========================================================================
    # Single orders
    # =========================================================================

    def upsert_from_payload(self, store: WooCommerceStore, woo_order: Union[WooOrder, Dict]) -> Tuple[str, Order]:
        """
        Idempotently create or update one order (webhooks, single-order sync)

        Returns:
            ('created' | 'updated' | 'skipped', order)
        """
        if not isinstance(woo_order, WooOrder):
            woo_order = WooOrder.model_validate(woo_order)

        sku_map = self.mapping_repo.get_active_sku_map(store.id)

        with connection_scope() as conn:
            action, order = self._upsert(
                store, woo_order, sku_map, conn, lambda: self._default_warehouse_id(store.company_id)
            )

        if action != 'skipped':
            self.store_repo.increment_stat(store.id, 'total_orders_synced', 1)

        logger.info(f"WooCommerce order {woo_order.id} for store {store.id}: {action} (order {order.id})")
        return action, order

    async def sync_single_order_by_id(self, store_id: int, woo_order_id: int,
                                      company_id: Optional[int] = None) -> Order:
        """
        Fetch one order from the store and upsert it

        Raises:
            NotFoundError: Store or WooCommerce order not found
            IntegrationError: Any other WooCommerce API error (502)
        """
        store = self._get_active_store(store_id, company_id=company_id)
        connector = self.connector_factory(store)

        try:
            raw_order = await connector.get(f"orders/{woo_order_id}")
        except WooCommerceAPIError as e:
            if e.status_code == 404:
                raise NotFoundError(
                    f"WooCommerce order {woo_order_id} not found",
                    "WOOCOMMERCE_ORDER_NOT_FOUND"
                )
            raise e.as_app_error() from e

        if not raw_order:
            raise NotFoundError(f"WooCommerce order {woo_order_id} not found", "WOOCOMMERCE_ORDER_NOT_FOUND")

        _, order = self.upsert_from_payload(store, raw_order)
        return order

    def update_order_status(self, woo_order_id: int, new_status: str, company_id: int) -> Optional[Order]:
        """Apply a WooCommerce status change; unknown orders are logged and ignored"""
        order = self.order_repo.find_by_woocommerce_order_id(company_id, woo_order_id)
        if not order:
            logger.warning(f"WooCommerce order {woo_order_id} not found for company {company_id}, status update ignored")
            return None

        mapped = map_order_status(new_status)
        if order.current_status == mapped:
            return order

        logger.info(f"WooCommerce order {woo_order_id}: {order.current_status} → {mapped}")
        return self.order_repo.update_status(order.id, mapped, f"Status updated from WooCommerce ({new_status})")

    def cancel_order(self, woo_order_id: int, company_id: int) -> Optional[Order]:
        """Cancel the order for a WooCommerce order deleted in the store"""
        order = self.order_repo.find_by_woocommerce_order_id(company_id, woo_order_id)
        if not order:
            logger.warning(f"WooCommerce order {woo_order_id} not found for company {company_id}, cancel ignored")
            return None

        if order.current_status == OrderStatus.CANCELLED:
            return order

        logger.info(f"Cancelling order {order.id} (WooCommerce order {woo_order_id} deleted)")
        return self.order_repo.update_status(order.id, OrderStatus.CANCELLED.value, "Order deleted in WooCommerce")
