"""
Order, company and shipment tables
"""
from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Text, DECIMAL, ForeignKey, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from shipcrowd.core.database import Base


class Company(Base):
    """
    Tenant companies (managed by onboarding; read here for default warehouse)
    """
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # {"default_warehouse_id": 12, ...}
    settings = Column(JSONB, nullable=False, server_default="{}")
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Order(Base):
    """
    Orders table - one row per channel order per company

    (company_id, source, source_id) is unique, which is what makes channel
    imports idempotent.
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("company_id", "source", "source_id", name="uq_orders_company_source"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    # Identification
    order_number = Column(String(100), nullable=False, index=True)
    source = Column(String(50), nullable=False, index=True)
    source_id = Column(String(100), nullable=False)
    external_order_number = Column(String(100))

    # Nested documents
    customer_info = Column(JSONB, nullable=False)
    products = Column(JSONB, nullable=False, server_default="[]")
    shipping_details = Column(JSONB, nullable=False, server_default="{}")
    totals = Column(JSONB, nullable=False, server_default="{}")
    status_history = Column(JSONB, nullable=False, server_default="[]")
    tags = Column(JSONB, nullable=False, server_default="[]")

    # States
    current_status = Column(String(50), nullable=False, default="PENDING", index=True)
    payment_status = Column(String(50), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=False, default="prepaid")
    currency = Column(String(10), nullable=False, default="USD")

    notes = Column(Text)
    warehouse_id = Column(Integer)

    # WooCommerce
    woocommerce_store_id = Column(Integer, ForeignKey("woocommerce_stores.id"), index=True)
    woocommerce_order_id = Column(BigInteger)
    fulfillment_synced_at = Column(DateTime(timezone=True))

    # Timestamps mirror the channel's date_created / date_modified
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class Shipment(Base):
    """
    Shipments (owned by courier integrations)
    """
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    tracking_number = Column(String(100), index=True)
    carrier = Column(String(100))
    status = Column(String(50), index=True)
    tracking_url = Column(Text)
    shipping_cost = Column(DECIMAL(12, 2))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
