"""
Repository Layer - Data Access

Repositories own all SQL and return domain models.

Author: TM3
Date: 2026-02-09
"""
from shipcrowd.repositories.order_repository import OrderRepository
from shipcrowd.repositories.store_repository import StoreRepository
from shipcrowd.repositories.product_mapping_repository import ProductMappingRepository
from shipcrowd.repositories.sync_log_repository import SyncLogRepository
from shipcrowd.repositories.webhook_event_repository import WebhookEventRepository
from shipcrowd.repositories.shipment_repository import ShipmentRepository
from shipcrowd.repositories.company_repository import CompanyRepository

__all__ = [
    'OrderRepository',
    'StoreRepository',
    'ProductMappingRepository',
    'SyncLogRepository',
    'WebhookEventRepository',
    'ShipmentRepository',
    'CompanyRepository',
]
