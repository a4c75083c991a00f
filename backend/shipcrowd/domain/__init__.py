"""
Domain Layer - Business Entities

This layer contains Pydantic models representing business entities.
These models enforce type safety and validation across the application.

Author: TM3
Date: 2026-02-09
"""
from shipcrowd.domain.order import (
    Order, OrderData, OrderStatus, PaymentStatus, PaymentMethod,
    CustomerInfo, Address, OrderProduct, ShippingDetails, OrderTotals, StatusHistoryEntry,
)
from shipcrowd.domain.store import WooCommerceStore, SyncConfig, SyncLog, SyncLogStatus, SyncStatus
from shipcrowd.domain.product_mapping import ProductMapping, ProductMappingCreate, MappingType
from shipcrowd.domain.shipment import Shipment, TrackingInfo

__all__ = [
    'Order', 'OrderData', 'OrderStatus', 'PaymentStatus', 'PaymentMethod',
    'CustomerInfo', 'Address', 'OrderProduct', 'ShippingDetails', 'OrderTotals', 'StatusHistoryEntry',
    'WooCommerceStore', 'SyncConfig', 'SyncLog', 'SyncLogStatus', 'SyncStatus',
    'ProductMapping', 'ProductMappingCreate', 'MappingType',
    'Shipment', 'TrackingInfo',
]
