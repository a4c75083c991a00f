"""
WooCommerce Webhook Service

Two steps per delivery:
1. receive() runs on the request path: acknowledges pings, locates the
   store by X-WC-Webhook-Source, verifies the signature and records the
   delivery once per (store, delivery id).
2. process() runs as a background task and applies the event.

Author: TM3
Date: 2026-02-11
"""
import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from shipcrowd.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from shipcrowd.domain.store import WooCommerceStore
from shipcrowd.repositories.store_repository import StoreRepository
from shipcrowd.repositories.webhook_event_repository import WebhookEventRepository
from shipcrowd.services.woocommerce_order_sync_service import WooCommerceOrderSyncService
from shipcrowd.services.woocommerce_product_mapping_service import WooCommerceProductMappingService
from shipcrowd.services.woocommerce_store_service import (
    WEBHOOK_TOPICS, WooCommerceStoreService, normalize_store_url,
)

logger = logging.getLogger(__name__)

PING_BODY = re.compile(rb"^webhook_id=\d+$")


@dataclass
class WebhookReceipt:
    status: str  # accepted | duplicate | ping | ignored
    topic: Optional[str] = None
    store_id: Optional[int] = None
    event_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_response(self) -> Dict:
        response = {'status': self.status}
        if self.topic:
            response['topic'] = self.topic
        if self.event_id:
            response['event_id'] = self.event_id
        return response


def delivery_key(delivery_id: Optional[str], raw_body: bytes) -> str:
    """X-WC-Webhook-Delivery-ID, or the SHA-256 of the body when it is missing"""
    if delivery_id and delivery_id.strip():
        return delivery_id.strip()
    return hashlib.sha256(raw_body).hexdigest()


class WooCommerceWebhookService:
    """Service for receiving and applying WooCommerce webhooks"""

    def __init__(
        self,
        store_repo: StoreRepository = None,
        event_repo: WebhookEventRepository = None,
        order_sync_service: WooCommerceOrderSyncService = None,
        mapping_service: WooCommerceProductMappingService = None
    ):
        self.store_repo = store_repo or StoreRepository()
        self.event_repo = event_repo or WebhookEventRepository()
        self.order_sync_service = order_sync_service or WooCommerceOrderSyncService()
        self.mapping_service = mapping_service or WooCommerceProductMappingService()

    # =========================================================================
    # Request path
    # =========================================================================

    def _find_store(self, source: str, topic: str, raw_body: bytes, signature: Optional[str]) -> WooCommerceStore:
        """
        Active store for the delivering site whose webhook secret signs this body

        Raises:
            NotFoundError: No active store for this URL
            AuthenticationError: Signature does not verify for any of them
        """
        stores = self.store_repo.find_active_by_url(normalize_store_url(source))
        if not stores:
            raise NotFoundError(f"No active WooCommerce store for {source}", "WOOCOMMERCE_STORE_NOT_FOUND")

        for store in stores:
            secret = store.webhook_secret_for(topic)
            if WooCommerceStoreService.verify_webhook_signature(raw_body, signature, secret):
                return store

        logger.warning(f"Invalid WooCommerce webhook signature for {topic} from {source}")
        raise AuthenticationError("Invalid webhook signature", "WEBHOOK_SIGNATURE_INVALID")

    def receive(
        self,
        raw_body: bytes,
        source: Optional[str],
        topic: Optional[str],
        signature: Optional[str],
        delivery_id: Optional[str] = None
    ) -> WebhookReceipt:
        """
        Authenticate and record a delivery

        Returns:
            WebhookReceipt; only 'accepted' receipts need process()

        Raises:
            ValidationError: Missing source/topic or unreadable body
            NotFoundError, AuthenticationError: See _find_store
        """
        if PING_BODY.match(raw_body.strip()):
            logger.info(f"WooCommerce webhook ping from {source}")
            return WebhookReceipt(status='ping')

        if not source:
            raise ValidationError("Missing X-WC-Webhook-Source header", "WEBHOOK_SOURCE_MISSING")
        if not topic:
            raise ValidationError("Missing X-WC-Webhook-Topic header", "WEBHOOK_TOPIC_MISSING")

        if topic not in WEBHOOK_TOPICS:
            logger.info(f"Ignoring unsupported WooCommerce webhook topic {topic} from {source}")
            return WebhookReceipt(status='ignored', topic=topic)

        store = self._find_store(source, topic, raw_body, signature)

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Webhook body is not valid JSON", "INVALID_WEBHOOK_PAYLOAD")
        if not isinstance(payload, dict):
            raise ValidationError("Webhook body must be a JSON object", "INVALID_WEBHOOK_PAYLOAD")

        resource_id = payload.get('id') if isinstance(payload.get('id'), int) else None
        event_id = self.event_repo.record(store.id, delivery_key(delivery_id, raw_body), topic, resource_id)

        if event_id is None:
            logger.info(f"Duplicate WooCommerce webhook {topic} for store {store.id}, delivery {delivery_id}")
            return WebhookReceipt(status='duplicate', topic=topic, store_id=store.id)

        return WebhookReceipt(status='accepted', topic=topic, store_id=store.id, event_id=event_id, payload=payload)

    # =========================================================================
    # Background processing
    # =========================================================================

    async def _apply(self, store: WooCommerceStore, topic: str, payload: Dict) -> str:
        """Apply one event; returns the final event status"""
        resource = topic.split('.', 1)[0]

        if resource == 'order' and store.is_paused:
            logger.info(f"WooCommerce store {store.id} is paused, ignoring {topic}")
            return 'IGNORED'

        if topic in ('order.created', 'order.updated'):
            self.order_sync_service.upsert_from_payload(store, payload)
        elif topic == 'order.deleted':
            self.order_sync_service.cancel_order(payload['id'], store.company_id)
        elif topic == 'product.created':
            await self.mapping_service.auto_map_product(store, payload)
        elif topic == 'product.updated':
            self.mapping_service.update_from_product(store, payload)
        elif topic == 'product.deleted':
            self.mapping_service.deactivate_product(store, payload['id'])
        else:
            # customer.* carry nothing Shipcrowd stores
            return 'IGNORED'

        return 'PROCESSED'

    async def process(self, event_id: int, store_id: int, topic: str, payload: Dict) -> str:
        """
        Apply a recorded delivery and mark its outcome

        Errors are recorded on the event (FAILED) and logged.
        """
        try:
            store = self.store_repo.find_by_id(store_id)
            if not store or not store.is_active:
                status = 'IGNORED'
            else:
                status = await self._apply(store, topic, payload)

            self.event_repo.mark(event_id, status)
            logger.info(f"WooCommerce webhook {topic} (event {event_id}, store {store_id}): {status}")
            return status

        except Exception as e:
            logger.error(f"Failed to process WooCommerce webhook {topic} (event {event_id}, store {store_id}): {e}")
            self.event_repo.mark(event_id, 'FAILED', str(e))
            return 'FAILED'
