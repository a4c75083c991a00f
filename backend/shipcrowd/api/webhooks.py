"""
Webhooks API - WooCommerce webhook deliveries

Endpoint:
- POST /api/v1/webhooks/woocommerce/{resource}/{event}

WooCommerce headers used:
- X-WC-Webhook-Source       site URL (locates the store)
- X-WC-Webhook-Topic        e.g. order.updated
- X-WC-Webhook-Signature    base64 HMAC-SHA256 of the raw body
- X-WC-Webhook-Delivery-ID  unique per delivery (idempotency key)

The delivery is verified and recorded on the request path; the event itself
is applied in a background task.

Author: TM3
Date: 2026-02-11
"""
from fastapi import APIRouter, BackgroundTasks, Header, Request
from typing import Optional
import logging

from shipcrowd.services.woocommerce_webhook_service import WooCommerceWebhookService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])

webhook_service = WooCommerceWebhookService()


@router.post("/woocommerce/{resource}/{event}")
async def woocommerce_webhook(
    resource: str,
    event: str,
    request: Request,
    background_tasks: BackgroundTasks,
    x_wc_webhook_source: Optional[str] = Header(None, alias="X-WC-Webhook-Source"),
    x_wc_webhook_topic: Optional[str] = Header(None, alias="X-WC-Webhook-Topic"),
    x_wc_webhook_signature: Optional[str] = Header(None, alias="X-WC-Webhook-Signature"),
    x_wc_webhook_delivery_id: Optional[str] = Header(None, alias="X-WC-Webhook-Delivery-ID"),
):
    """
    Receive a WooCommerce webhook

    Returns:
        {"status": "accepted" | "duplicate" | "ping" | "ignored", ...}
    """
    raw_body = await request.body()
    topic = x_wc_webhook_topic or f"{resource}.{event}"

    receipt = webhook_service.receive(
        raw_body,
        source=x_wc_webhook_source,
        topic=topic,
        signature=x_wc_webhook_signature,
        delivery_id=x_wc_webhook_delivery_id,
    )

    if receipt.status == 'accepted':
        background_tasks.add_task(
            webhook_service.process, receipt.event_id, receipt.store_id, receipt.topic, receipt.payload
        )
        logger.info(f"WooCommerce webhook {topic} accepted for store {receipt.store_id} (event {receipt.event_id})")

    return receipt.to_response()
