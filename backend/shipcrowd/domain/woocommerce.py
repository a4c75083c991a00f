"""
WooCommerce REST API v3 payload models

Lenient pydantic models for what the WooCommerce REST API and its webhooks
send. Unknown fields are kept (extra="allow"); fields WooCommerce omits for
digital products, gift cards or guest checkouts all have defaults.

Reference: https://woocommerce.github.io/woocommerce-rest-api-docs/

Author: TM3
Date: 2026-02-09
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional, Union
from datetime import datetime, timezone


class WooBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class WooAddress(WooBaseModel):
    first_name: Optional[str] = ""
    last_name: Optional[str] = ""
    company: Optional[str] = ""
    address_1: Optional[str] = ""
    address_2: Optional[str] = ""
    city: Optional[str] = ""
    state: Optional[str] = ""
    postcode: Optional[str] = ""
    country: Optional[str] = ""
    email: Optional[str] = None
    phone: Optional[str] = None


class WooImage(WooBaseModel):
    id: Optional[int] = None
    src: str = ""


class WooLineItem(WooBaseModel):
    id: Optional[int] = None
    name: str = ""
    product_id: int = 0
    variation_id: Optional[int] = 0
    quantity: int = 0
    subtotal: Optional[str] = "0"
    total: Optional[str] = "0"
    sku: Optional[str] = ""
    price: Union[float, str, None] = 0
    image: Optional[WooImage] = None


class WooShippingLine(WooBaseModel):
    id: Optional[int] = None
    method_title: Optional[str] = ""
    method_id: Optional[str] = ""
    total: Optional[str] = "0"


class WooCouponLine(WooBaseModel):
    id: Optional[int] = None
    code: str = ""
    discount: Optional[str] = "0"


class WooOrder(WooBaseModel):
    """Order object as returned by GET /orders and order.* webhooks"""
    id: int
    parent_id: Optional[int] = 0
    number: Optional[str] = None
    status: Optional[str] = "pending"
    currency: Optional[str] = None
    date_created: Optional[str] = None
    date_created_gmt: Optional[str] = None
    date_modified: Optional[str] = None
    date_modified_gmt: Optional[str] = None
    discount_total: Optional[str] = "0"
    shipping_total: Optional[str] = "0"
    total: Optional[str] = "0"
    total_tax: Optional[str] = "0"
    customer_id: Optional[int] = 0
    customer_note: Optional[str] = ""
    billing: Optional[WooAddress] = None
    shipping: Optional[WooAddress] = None
    payment_method: Optional[str] = ""
    payment_method_title: Optional[str] = ""
    line_items: List[WooLineItem] = Field(default_factory=list)
    shipping_lines: List[WooShippingLine] = Field(default_factory=list)
    coupon_lines: List[WooCouponLine] = Field(default_factory=list)

    @field_validator("number", mode="before")
    @classmethod
    def _number_as_str(cls, value):
        return str(value) if value is not None else None

    @property
    def display_number(self) -> str:
        return self.number or str(self.id)


class WooProductAttribute(WooBaseModel):
    id: Optional[int] = None
    name: Optional[str] = ""
    option: Optional[str] = None
    options: List[str] = Field(default_factory=list)


class WooProduct(WooBaseModel):
    """Product object as returned by GET /products and product.* webhooks"""
    id: int
    name: str = ""
    type: str = "simple"
    status: Optional[str] = None
    sku: Optional[str] = ""
    price: Optional[str] = None
    variations: List[int] = Field(default_factory=list)
    attributes: List[WooProductAttribute] = Field(default_factory=list)


class WooProductVariation(WooBaseModel):
    id: int
    sku: Optional[str] = ""
    price: Optional[str] = None
    attributes: List[WooProductAttribute] = Field(default_factory=list)

    def attribute_label(self) -> str:
        return ", ".join(a.option for a in self.attributes if a.option)


class WooWebhook(WooBaseModel):
    id: int
    name: Optional[str] = None
    topic: Optional[str] = None
    delivery_url: Optional[str] = None
    status: Optional[str] = None


def parse_woo_datetime(gmt_value: Optional[str], local_value: Optional[str] = None) -> Optional[datetime]:
    """
    Parse a WooCommerce timestamp to an aware UTC datetime

    WooCommerce sends ISO 8601 without an offset; *_gmt fields are UTC and
    preferred. The site-local value is used (as UTC) only when the GMT one
    is missing. Returns None when neither parses.
    """
    for value in (gmt_value, local_value):
        if not value:
            continue
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def parse_amount(value: Any) -> float:
    """
    Parse a WooCommerce money string ("12.50") to float

    WooCommerce sends amounts as strings; empty or malformed values count as 0.
    """
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
