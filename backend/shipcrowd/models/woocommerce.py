"""
WooCommerce integration tables
"""
from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Text, ForeignKey, UniqueConstraint, Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from shipcrowd.core.database import Base


class WooCommerceStore(Base):
    """
    Connected WooCommerce stores (credentials are Fernet-encrypted)
    """
    __tablename__ = "woocommerce_stores"
    __table_args__ = (
        UniqueConstraint("company_id", "store_url", name="uq_woocommerce_stores_company_url"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    store_url = Column(String(500), nullable=False, index=True)
    store_name = Column(String(255))
    consumer_key = Column(Text, nullable=False)
    consumer_secret = Column(Text, nullable=False)

    api_version = Column(String(20), nullable=False, default="wc/v3")
    wp_version = Column(String(20))
    wc_version = Column(String(20))
    currency = Column(String(10))
    timezone = Column(String(100))

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_paused = Column(Boolean, nullable=False, default=False)
    installed_at = Column(DateTime(timezone=True))
    uninstalled_at = Column(DateTime(timezone=True))

    sync_config = Column(JSONB, nullable=False, server_default="{}")
    webhooks = Column(JSONB, nullable=False, server_default="[]")
    stats = Column(JSONB, nullable=False, server_default="{}")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WooCommerceProductMapping(Base):
    """
    WooCommerce product/variation → internal SKU
    """
    __tablename__ = "woocommerce_product_mappings"
    __table_args__ = (
        # variation_id is stored as 0 for simple products so the constraint holds
        UniqueConstraint(
            "woocommerce_store_id", "woocommerce_product_id", "woocommerce_variation_id",
            name="uq_woocommerce_mapping_product",
        ),
        Index("ix_woocommerce_mapping_sku", "woocommerce_store_id", "woocommerce_sku"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    woocommerce_store_id = Column(
        Integer, ForeignKey("woocommerce_stores.id", ondelete="CASCADE"), nullable=False, index=True
    )

    woocommerce_product_id = Column(BigInteger, nullable=False)
    woocommerce_variation_id = Column(BigInteger, nullable=False, default=0)
    woocommerce_sku = Column(String(255), nullable=False)
    woocommerce_title = Column(String(500))

    internal_sku = Column(String(255), nullable=False)
    internal_product_name = Column(String(500))

    mapping_type = Column(String(10), nullable=False, default="AUTO")
    sync_inventory = Column(Boolean, nullable=False, default=True)
    sync_price = Column(Boolean, nullable=False, default=False)
    sync_on_fulfillment = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)

    sync_errors = Column(Integer, nullable=False, default=0)
    last_sync_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WooCommerceSyncLog(Base):
    """
    One row per sync run (orders, products)
    """
    __tablename__ = "woocommerce_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("woocommerce_stores.id", ondelete="CASCADE"), nullable=False, index=True)
    sync_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="IN_PROGRESS")

    start_time = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    end_time = Column(DateTime(timezone=True))

    items_synced = Column(Integer, nullable=False, default=0)
    items_skipped = Column(Integer, nullable=False, default=0)
    items_failed = Column(Integer, nullable=False, default=0)
    errors = Column(JSONB, nullable=False, server_default="[]")


class WooCommerceWebhookEvent(Base):
    """
    Received webhook deliveries - (store_id, delivery_id) is the idempotency key
    """
    __tablename__ = "woocommerce_webhook_events"
    __table_args__ = (
        UniqueConstraint("store_id", "delivery_id", name="uq_woocommerce_webhook_delivery"),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("woocommerce_stores.id", ondelete="CASCADE"), nullable=False, index=True)
    delivery_id = Column(String(100), nullable=False)
    topic = Column(String(50), nullable=False)
    resource_id = Column(BigInteger)

    status = Column(String(20), nullable=False, default="RECEIVED")
    error = Column(Text)

    received_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True))
