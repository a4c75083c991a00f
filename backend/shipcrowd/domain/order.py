"""
Order Domain Models

Represents orders imported from sales channels (WooCommerce today) into
Shipcrowd. These are the single source of truth for order data structure.

Author: TM3
Date: 2026-02-09
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    COD = "cod"
    PREPAID = "prepaid"


class Address(BaseModel):
    line1: str = ""
    line2: Optional[str] = None
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = ""


class CustomerInfo(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Address = Field(default_factory=Address)


class OrderProduct(BaseModel):
    """
    A line item as stored on the order

    sku is the internal SKU (from an active product mapping when one exists);
    woocommerce_sku keeps what the store sent.
    """
    name: str
    sku: str
    woocommerce_sku: Optional[str] = None
    quantity: int = Field(..., ge=0)
    price: float = 0.0
    weight: float = 0.0
    image_url: str = ""


class ShippingDetails(BaseModel):
    shipping_cost: float = 0.0
    provider: str = "Standard Shipping"
    shipping_method: str = "flat_rate"


class OrderTotals(BaseModel):
    subtotal: float = 0.0
    tax: float = 0.0
    shipping: float = 0.0
    discount: float = 0.0
    total: float = 0.0


class StatusHistoryEntry(BaseModel):
    status: str
    timestamp: datetime
    comment: Optional[str] = None


class OrderData(BaseModel):
    """
    Order fields produced by a channel mapper, before persistence

    Carries everything needed to create or overwrite an order row. id and
    bookkeeping columns live on Order.
    """
    company_id: int
    order_number: str
    source: str
    source_id: str
    external_order_number: Optional[str] = None

    customer_info: CustomerInfo
    products: List[OrderProduct] = Field(default_factory=list)
    shipping_details: ShippingDetails = Field(default_factory=ShippingDetails)

    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.PREPAID
    currency: str = "USD"
    current_status: OrderStatus = OrderStatus.PENDING
    totals: OrderTotals = Field(default_factory=OrderTotals)

    notes: str = ""
    tags: List[str] = Field(default_factory=list)
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)

    warehouse_id: Optional[int] = None
    woocommerce_store_id: Optional[int] = None
    woocommerce_order_id: Optional[int] = None
    # set when the channel already reports the order as fulfilled
    fulfillment_synced_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(use_enum_values=True)


class Order(OrderData):
    """
    Order domain model - an order as stored in the database

    fulfillment_synced_at records when delivery reached the store, either
    pushed by Shipcrowd or reported by the channel itself.
    """
    id: int = Field(..., description="Internal order ID")

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @property
    def is_woocommerce(self) -> bool:
        return self.source == "woocommerce"

    @property
    def item_count(self) -> int:
        return len(self.products)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.products)

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dict with computed fields"""
        data = self.model_dump(mode="json")
        data['item_count'] = self.item_count
        data['total_quantity'] = self.total_quantity
        return data
