"""
WooCommerce status mapping

Static lookup tables between WooCommerce order statuses / payment gateways
and Shipcrowd order, payment and shipment statuses. Unknown inputs fall back
to a safe default instead of raising.

Author: TM3
Date: 2026-02-09
"""
from typing import Optional

from shipcrowd.domain.order import OrderStatus, PaymentStatus, PaymentMethod


# WooCommerce order status → Shipcrowd order status (import direction)
WOO_ORDER_STATUS_MAP = {
    'pending': OrderStatus.PENDING,
    'processing': OrderStatus.PROCESSING,
    'on-hold': OrderStatus.PENDING,
    'completed': OrderStatus.DELIVERED,
    'cancelled': OrderStatus.CANCELLED,
    'refunded': OrderStatus.REFUNDED,
    'failed': OrderStatus.CANCELLED,
    'trash': OrderStatus.CANCELLED,
}

# WooCommerce order status → payment status
WOO_PAYMENT_STATUS_MAP = {
    'pending': PaymentStatus.PENDING,
    'processing': PaymentStatus.PAID,
    'on-hold': PaymentStatus.PENDING,
    'completed': PaymentStatus.PAID,
    'cancelled': PaymentStatus.PENDING,
    'refunded': PaymentStatus.REFUNDED,
    'failed': PaymentStatus.FAILED,
}

# Payment gateway ids containing any of these are cash on delivery
COD_GATEWAY_MARKERS = ('cod', 'cash_on_delivery', 'cash')

# Shipcrowd order/shipment status → WooCommerce order status (push direction)
INTERNAL_TO_WOO_STATUS_MAP = {
    'PENDING': 'pending',
    'PROCESSING': 'processing',
    'BOOKED': 'processing',
    'MANIFESTED': 'processing',
    'PICKED_UP': 'processing',
    'IN_TRANSIT': 'processing',
    'OUT_FOR_DELIVERY': 'processing',
    'DELIVERED': 'completed',
    'CANCELLED': 'cancelled',
    'FAILED': 'failed',
    'REFUNDED': 'refunded',
    'RTO_INITIATED': 'processing',
    'RTO_IN_TRANSIT': 'processing',
    'RTO_DELIVERED': 'failed',
}

# WooCommerce status → Shipcrowd order status, after Shipcrowd pushed it
WOO_TO_INTERNAL_STATUS_MAP = {
    'pending': OrderStatus.PENDING,
    'processing': OrderStatus.PROCESSING,
    'on-hold': OrderStatus.PENDING,
    'completed': OrderStatus.DELIVERED,
    'cancelled': OrderStatus.CANCELLED,
    'refunded': OrderStatus.REFUNDED,
    'failed': OrderStatus.FAILED,
}


def _normalize(status: Optional[str]) -> str:
    return (status or '').strip().lower()


def map_order_status(woo_status: Optional[str]) -> str:
    """
    Map a WooCommerce order status to a Shipcrowd order status

    Unknown, empty or missing statuses map to PENDING.
    """
    return WOO_ORDER_STATUS_MAP.get(_normalize(woo_status), OrderStatus.PENDING).value


def map_payment_status(woo_status: Optional[str]) -> str:
    return WOO_PAYMENT_STATUS_MAP.get(_normalize(woo_status), PaymentStatus.PENDING).value


def detect_payment_method(gateway: Optional[str]) -> str:
    """cod when the gateway id looks like cash on delivery, prepaid otherwise"""
    gateway = _normalize(gateway)
    if gateway and any(marker in gateway for marker in COD_GATEWAY_MARKERS):
        return PaymentMethod.COD.value
    return PaymentMethod.PREPAID.value


def map_internal_to_woo_status(status: Optional[str]) -> str:
    """Map a Shipcrowd order or shipment status to the WooCommerce status to push"""
    return INTERNAL_TO_WOO_STATUS_MAP.get((status or '').strip().upper(), 'pending')


def map_woo_to_internal_status(woo_status: Optional[str]) -> str:
    return WOO_TO_INTERNAL_STATUS_MAP.get(_normalize(woo_status), OrderStatus.PENDING).value
