"""
Database table models (schema definition)
"""
from .order import Company, Order, Shipment
from .woocommerce import (
    WooCommerceStore,
    WooCommerceProductMapping,
    WooCommerceSyncLog,
    WooCommerceWebhookEvent,
)

__all__ = [
    "Company",
    "Order",
    "Shipment",
    "WooCommerceStore",
    "WooCommerceProductMapping",
    "WooCommerceSyncLog",
    "WooCommerceWebhookEvent",
]
