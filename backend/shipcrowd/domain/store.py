"""
WooCommerce store connection domain models

A store is a tenant's connected WooCommerce site: credentials (encrypted at
rest), sync configuration, registered webhooks and running totals.

Author: TM3
Date: 2026-02-09
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum


class SyncStatus(str, Enum):
    IDLE = "IDLE"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SyncLogStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class OrderSyncConfig(BaseModel):
    enabled: bool = True
    auto_sync: bool = True
    sync_interval: int = 15  # minutes
    sync_status: SyncStatus = SyncStatus.IDLE
    last_sync_at: Optional[datetime] = None
    error_count: int = 0


class InventorySyncConfig(BaseModel):
    enabled: bool = True
    auto_sync: bool = False
    sync_interval: int = 60  # minutes
    sync_direction: str = "ONE_WAY"
    sync_status: SyncStatus = SyncStatus.IDLE
    last_sync_at: Optional[datetime] = None
    error_count: int = 0


class SyncConfig(BaseModel):
    order_sync: OrderSyncConfig = Field(default_factory=OrderSyncConfig)
    inventory_sync: InventorySyncConfig = Field(default_factory=InventorySyncConfig)
    webhooks_enabled: bool = True


class WebhookRegistration(BaseModel):
    topic: str
    woocommerce_webhook_id: str
    address: str
    secret: str
    is_active: bool = True
    created_at: datetime


class StoreStats(BaseModel):
    total_orders_synced: int = 0
    total_products_mapped: int = 0
    total_inventory_syncs: int = 0


class WooCommerceStore(BaseModel):
    """
    Connected WooCommerce store

    consumer_key / consumer_secret hold the *encrypted* tokens; use
    shipcrowd.core.encryption.decrypt_value before talking to the store.
    """
    id: int
    company_id: int
    store_url: str
    store_name: Optional[str] = None
    consumer_key: str = Field(..., repr=False)
    consumer_secret: str = Field(..., repr=False)
    api_version: str = "wc/v3"
    wp_version: Optional[str] = None
    wc_version: Optional[str] = None
    currency: Optional[str] = None
    timezone: Optional[str] = None
    is_active: bool = True
    is_paused: bool = False
    installed_at: Optional[datetime] = None
    uninstalled_at: Optional[datetime] = None
    sync_config: SyncConfig = Field(default_factory=SyncConfig)
    webhooks: List[WebhookRegistration] = Field(default_factory=list)
    stats: StoreStats = Field(default_factory=StoreStats)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def webhook_secret_for(self, topic: str) -> Optional[str]:
        """Secret registered for an active webhook topic, if any"""
        for webhook in self.webhooks:
            if webhook.topic == topic and webhook.is_active:
                return webhook.secret
        return None

    def to_public_dict(self) -> dict:
        """Serializable view without credentials or webhook secrets"""
        data = self.model_dump(mode="json", exclude={"consumer_key", "consumer_secret"})
        for webhook in data.get("webhooks", []):
            webhook.pop("secret", None)
        return data


class SyncLog(BaseModel):
    id: int
    store_id: int
    sync_type: str
    status: SyncLogStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    items_synced: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    errors: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)
