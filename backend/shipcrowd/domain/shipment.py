"""
Shipment Domain Model (lightweight, fulfillment context)

Shipments are created and tracked by the courier integrations; the
WooCommerce subsystem only reads them to push tracking back to the store.
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class Shipment(BaseModel):
    id: int
    order_id: int
    tracking_number: Optional[str] = None  # AWB
    carrier: Optional[str] = None
    status: Optional[str] = None
    tracking_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TrackingInfo(BaseModel):
    """Tracking data pushed to a WooCommerce order"""
    awb_number: str
    courier_name: str
    tracking_url: Optional[str] = None
