"""
Product Mapping Domain Models

Links a WooCommerce product (or one of its variations) to an internal SKU.

Author: TM3
Date: 2026-02-10
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum


class MappingType(str, Enum):
    AUTO = "AUTO"
    MANUAL = "MANUAL"


class ProductMapping(BaseModel):
    """
    Product mapping between a WooCommerce store and the internal catalog

    Fields:
        woocommerce_product_id: WooCommerce product ID
        woocommerce_variation_id: Variation ID (None for simple products)
        woocommerce_sku: SKU as configured in the store
        internal_sku: SKU used on Shipcrowd orders and shipments
        mapping_type: AUTO (exact SKU match) or MANUAL (user/CSV)
        sync_on_fulfillment: Use this mapping when importing orders
    """
    id: int
    company_id: int
    woocommerce_store_id: int
    woocommerce_product_id: int
    woocommerce_variation_id: Optional[int] = None
    woocommerce_sku: str
    woocommerce_title: Optional[str] = None
    internal_sku: str
    internal_product_name: Optional[str] = None
    mapping_type: MappingType = MappingType.AUTO
    sync_inventory: bool = True
    sync_price: bool = False
    sync_on_fulfillment: bool = True
    is_active: bool = True
    sync_errors: int = 0
    last_sync_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ProductMappingCreate(BaseModel):
    """Schema for creating a mapping by hand or from CSV"""
    woocommerce_product_id: int = Field(..., gt=0)
    woocommerce_variation_id: Optional[int] = None
    woocommerce_sku: str = Field(..., min_length=1)
    woocommerce_title: Optional[str] = None
    internal_sku: str = Field(..., min_length=1)
    internal_product_name: Optional[str] = None
    sync_inventory: bool = True
    sync_price: bool = False
    sync_on_fulfillment: bool = True
