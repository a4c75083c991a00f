"""
WooCommerce Fulfillment Service - pushes shipping progress back to the store

Handles:
- Order status updates (with tracking meta data)
- Tracking / status notes on the WooCommerce order
- Shipment status changes coming from courier integrations
- Re-pushing delivered orders that were never confirmed to the store

Author: TM3
Date: 2026-02-11
"""
import logging
from typing import Any, Dict, Optional

from shipcrowd.core.config import settings
from shipcrowd.core.exceptions import AppError, NotFoundError
from shipcrowd.domain.order import Order
from shipcrowd.domain.shipment import TrackingInfo
from shipcrowd.domain.store import WooCommerceStore
from shipcrowd.repositories.order_repository import OrderRepository
from shipcrowd.repositories.store_repository import StoreRepository
from shipcrowd.repositories.shipment_repository import ShipmentRepository
from shipcrowd.services.status_mapping import map_woo_to_internal_status
from shipcrowd.services.woocommerce_store_service import build_connector

logger = logging.getLogger(__name__)


COURIER_TRACKING_URLS = {
    'bluedart': "https://www.bluedart.com/tracking?tracking_id={awb}",
    'delhivery': "https://www.delhivery.com/track/package/{awb}",
    'ecom': "https://ecomexpress.in/tracking/?awb_field={awb}",
    'ecom express': "https://ecomexpress.in/tracking/?awb_field={awb}",
    'xpressbees': "https://www.xpressbees.com/shipment/tracking?awb={awb}",
    'dtdc': "https://www.dtdc.in/tracking/shipment-tracking.asp?strCnno={awb}",
    'ekart': "https://ekartlogistics.com/track/{awb}",
    'shadowfax': "https://tracker.shadowfax.in/#/track?awb={awb}",
    'shiprocket': "https://shiprocket.co/tracking/{awb}",
    'nimbuspost': "https://www.nimbuspost.com/tracking?search_by=awb&waybill_id={awb}",
}

STATUS_NOTE_LABELS = {
    'IN_TRANSIT': "Package in transit",
    'OUT_FOR_DELIVERY': "Out for delivery",
    'ATTEMPTED_DELIVERY': "Delivery attempted",
    'FAILED_ATTEMPT': "Delivery failed",
    'RTO_INITIATED': "Return initiated",
    'RTO_IN_TRANSIT': "Return in transit",
    'RTO_DELIVERED': "Returned to origin",
}

SHIPPED_STATUSES = {'BOOKED', 'MANIFESTED', 'PICKED_UP'}
NOTE_ONLY_STATUSES = {'IN_TRANSIT', 'OUT_FOR_DELIVERY', 'ATTEMPTED_DELIVERY', 'FAILED_ATTEMPT'}
RTO_STATUSES = {'RTO_INITIATED', 'RTO_IN_TRANSIT'}


def generate_tracking_url(awb_number: str, courier_name: Optional[str]) -> str:
    """Public tracking page for known couriers, Shipcrowd's own page otherwise"""
    courier = (courier_name or '').lower()
    for key, template in COURIER_TRACKING_URLS.items():
        if key in courier:
            return template.format(awb=awb_number)
    return f"{settings.FRONTEND_URL.rstrip('/')}/track/{awb_number}"


class WooCommerceFulfillmentService:
    """Service for pushing order status and tracking to WooCommerce"""

    def __init__(
        self,
        order_repo: OrderRepository = None,
        store_repo: StoreRepository = None,
        shipment_repo: ShipmentRepository = None,
        connector_factory=None
    ):
        self.order_repo = order_repo or OrderRepository()
        self.store_repo = store_repo or StoreRepository()
        self.shipment_repo = shipment_repo or ShipmentRepository()
        self.connector_factory = connector_factory or build_connector

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_store(self, order: Order) -> Optional[WooCommerceStore]:
        """The order's own store if still active, else the company's first active store"""
        if order.woocommerce_store_id:
            store = self.store_repo.find_by_id(order.woocommerce_store_id)
            if store and store.is_active:
                return store

        stores = self.store_repo.find_active(company_id=order.company_id)
        return stores[0] if stores else None

    def _woocommerce_order(self, order_id: int, company_id: Optional[int] = None):
        """(order, store) for a WooCommerce order, or (None, None) when not applicable"""
        order = self.order_repo.find_by_id(order_id, company_id=company_id)
        if not order or not order.is_woocommerce or not order.source_id:
            return None, None
        store = self._resolve_store(order)
        if not store:
            return None, None
        return order, store

    async def _add_note(self, order_id: int, note: str, customer_note: bool) -> Optional[Dict]:
        """Post an order note; failures are logged and return None"""
        try:
            order, store = self._woocommerce_order(order_id)
            if not order:
                return None

            connector = self.connector_factory(store)
            return await connector.post(f"orders/{order.source_id}/notes", {
                'note': note,
                'customer_note': customer_note,
            })
        except Exception as e:
            logger.warning(f"Failed to add WooCommerce note to order {order_id}: {e}")
            return None

    async def _add_status_note(self, order_id: int, status: str, message: Optional[str] = None) -> None:
        label = STATUS_NOTE_LABELS.get(status)
        if message:
            note = f"{label or status}: {message}"
        else:
            note = label or f"Status: {status}"
        await self._add_note(order_id, note, customer_note=True)

    # =========================================================================
    # Status push
    # =========================================================================

    async def update_order_status(
        self,
        order_id: int,
        woo_status: str,
        tracking: Optional[TrackingInfo] = None,
        company_id: Optional[int] = None
    ) -> Optional[Any]:
        """
        Set the WooCommerce order status and record it locally

        Args:
            order_id: Shipcrowd order ID
            woo_status: WooCommerce status (processing, completed, cancelled, ...)
            tracking: Optional tracking to attach as order meta data and note
            company_id: When given, the order must belong to this company

        Returns:
            The updated WooCommerce order, or None for non-WooCommerce orders

        Raises:
            NotFoundError: Order or store not found
            AppError: 400 WOOCOMMERCE_ORDER_ID_MISSING, 500 WOOCOMMERCE_UPDATE_FAILED
        """
        try:
            order = self.order_repo.find_by_id(order_id, company_id=company_id)
            if not order:
                raise NotFoundError("Order not found", "ORDER_NOT_FOUND")

            if not order.is_woocommerce:
                logger.debug(f"Order {order_id} is from {order.source}, skipping WooCommerce status update")
                return None

            if not order.source_id:
                raise AppError("Order missing WooCommerce order ID", "WOOCOMMERCE_ORDER_ID_MISSING", 400)

            store = self._resolve_store(order)
            if not store:
                raise NotFoundError(
                    "No active WooCommerce store found for this company",
                    "WOOCOMMERCE_STORE_NOT_FOUND"
                )

            payload = {'status': woo_status}
            if tracking:
                payload['meta_data'] = [
                    {'key': '_tracking_number', 'value': tracking.awb_number},
                    {'key': '_tracking_provider', 'value': tracking.courier_name},
                    {'key': '_tracking_url', 'value': tracking.tracking_url or generate_tracking_url(
                        tracking.awb_number, tracking.courier_name
                    )},
                    {'key': '_shipcrowd_order_id', 'value': str(order.id)},
                ]

            logger.info(
                f"Updating WooCommerce order {order.source_id} (order {order_id}, store {store.id}) to {woo_status}"
            )
            connector = self.connector_factory(store)
            response = await connector.put(f"orders/{order.source_id}", payload)

            if tracking:
                await self.add_tracking_note(order_id, tracking)

            internal_status = map_woo_to_internal_status(woo_status)
            self.order_repo.update_status(order.id, internal_status, f"WooCommerce status updated to: {woo_status}")

            return response

        except AppError:
            raise
        except Exception as e:
            logger.error(f"Failed to update WooCommerce order status for order {order_id}: {e}")
            raise AppError(
                f"Failed to update WooCommerce order: {e}",
                "WOOCOMMERCE_UPDATE_FAILED",
                500
            )

    async def add_tracking_note(self, order_id: int, tracking: TrackingInfo,
                                customer_note: bool = True) -> Optional[Dict]:
        """Customer-visible shipment note; returns None if it could not be added"""
        tracking_url = tracking.tracking_url or generate_tracking_url(tracking.awb_number, tracking.courier_name)
        note = (
            "Shipment Update\n\n"
            "Your order has been shipped!\n\n"
            f"Courier: {tracking.courier_name}\n"
            f"Tracking Number: {tracking.awb_number}\n\n"
            f"Track your package here: {tracking_url}\n\n"
            "Thank you for your order!"
        )
        result = await self._add_note(order_id, note, customer_note)
        if result is not None:
            logger.info(f"Tracking note added to WooCommerce order for order {order_id} ({tracking.awb_number})")
        return result

    async def mark_as_shipped(self, order_id: int, tracking: TrackingInfo,
                              company_id: Optional[int] = None) -> Optional[Any]:
        return await self.update_order_status(order_id, 'processing', tracking, company_id=company_id)

    async def mark_as_delivered(self, order_id: int, company_id: Optional[int] = None) -> Optional[Any]:
        """Complete the WooCommerce order, add a delivery note and stamp fulfillment_synced_at"""
        result = await self.update_order_status(order_id, 'completed', company_id=company_id)
        if result is None:
            return None

        await self._add_note(order_id, "Order has been delivered successfully!", customer_note=True)
        self.order_repo.mark_fulfillment_synced(order_id)
        return result

    async def cancel_order(self, order_id: int, reason: Optional[str] = None,
                           company_id: Optional[int] = None) -> Optional[Any]:
        result = await self.update_order_status(order_id, 'cancelled', company_id=company_id)
        if result is None:
            return None

        note = f"Order cancelled: {reason}" if reason else "Order cancelled"
        await self._add_note(order_id, note, customer_note=False)
        return result

    # =========================================================================
    # Shipment events
    # =========================================================================

    async def handle_shipment_status_change(self, shipment_id: int, status: str) -> None:
        """
        Reflect a shipment status change on the WooCommerce order

        Runs from courier status updates; errors are logged, never raised.
        """
        status = (status or '').upper()
        try:
            shipment = self.shipment_repo.find_by_id(shipment_id)
            if not shipment:
                logger.warning(f"Shipment {shipment_id} not found for WooCommerce sync")
                return

            order = self.order_repo.find_by_id(shipment.order_id)
            if not order or not order.is_woocommerce:
                return

            if status in SHIPPED_STATUSES:
                await self.mark_as_shipped(order.id, TrackingInfo(
                    awb_number=shipment.tracking_number or '',
                    courier_name=shipment.carrier or '',
                    tracking_url=shipment.tracking_url,
                ))
            elif status in NOTE_ONLY_STATUSES:
                await self._add_status_note(order.id, status)
            elif status in RTO_STATUSES:
                await self._add_status_note(order.id, status, "Order is being returned to origin")
            elif status == 'RTO_DELIVERED':
                await self.update_order_status(order.id, 'failed')
                await self._add_status_note(order.id, status, "Order returned to origin - delivery failed")
            elif status == 'DELIVERED':
                await self.mark_as_delivered(order.id)
            elif status == 'CANCELLED':
                await self.cancel_order(order.id, "Shipment cancelled")
            else:
                logger.debug(f"Shipment status {status} has no WooCommerce action")
                return

            logger.info(f"WooCommerce order for order {order.id} synced with shipment {shipment_id} status {status}")

        except Exception as e:
            logger.error(f"Failed to sync shipment {shipment_id} status {status} to WooCommerce: {e}")

    # =========================================================================
    # Recovery
    # =========================================================================

    async def sync_pending_updates(self, store_id: int, company_id: Optional[int] = None, limit: int = 100) -> int:
        """
        Push delivered orders whose completion never reached the store

        Returns:
            Number of orders pushed
        """
        store = self.store_repo.find_by_id(store_id, company_id=company_id)
        if not store:
            raise NotFoundError("WooCommerce store not found", "WOOCOMMERCE_STORE_NOT_FOUND")

        orders = self.order_repo.find_pending_fulfillment(store_id, limit=limit)
        synced = 0

        for order in orders:
            try:
                if await self.mark_as_delivered(order.id) is not None:
                    synced += 1
            except AppError as e:
                logger.warning(f"Failed to push delivered order {order.id} to WooCommerce: {e.message}")

        logger.info(f"Pending WooCommerce updates for store {store_id}: {synced}/{len(orders)} pushed")
        return synced
