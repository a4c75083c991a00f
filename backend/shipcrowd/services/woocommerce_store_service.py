"""
WooCommerce Store Service - connection lifecycle of a tenant's store

Handles:
- Credential test and store installation (credentials encrypted at rest)
- Webhook registration / unregistration
- Disconnect, credential refresh, pause / resume
- Webhook signature verification

Author: TM3
Date: 2026-02-09
"""
import base64
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, List, Optional

from shipcrowd.connectors.woocommerce_connector import WooCommerceConnector, WooCommerceAPIError
from shipcrowd.core.config import settings
from shipcrowd.core.encryption import encrypt_value, decrypt_value
from shipcrowd.core.exceptions import AppError, ConflictError, NotFoundError
from shipcrowd.domain.store import WooCommerceStore, SyncConfig, WebhookRegistration
from shipcrowd.repositories.store_repository import StoreRepository

logger = logging.getLogger(__name__)


WEBHOOK_TOPICS = [
    'order.created',
    'order.updated',
    'order.deleted',
    'product.created',
    'product.updated',
    'product.deleted',
    'customer.created',
    'customer.updated',
]


def normalize_store_url(url: str) -> str:
    """'shop.example.com/' → 'https://shop.example.com'"""
    url = (url or '').strip().rstrip('/')
    if url and '://' not in url:
        url = f"https://{url}"
    return url


def webhook_delivery_url(topic: str) -> str:
    """order.created → {APP_URL}/api/v1/webhooks/woocommerce/order/created"""
    resource, event = topic.split('.', 1)
    return f"{settings.APP_URL.rstrip('/')}/api/v1/webhooks/woocommerce/{resource}/{event}"


def build_connector(store: WooCommerceStore) -> WooCommerceConnector:
    """Connector for a stored store, with its credentials decrypted"""
    return WooCommerceConnector(
        store_url=store.store_url,
        consumer_key=decrypt_value(store.consumer_key),
        consumer_secret=decrypt_value(store.consumer_secret),
        api_version=store.api_version,
    )


class WooCommerceStoreService:
    """
    Service for connecting and managing WooCommerce stores

    connector_factory builds a connector for a stored store; plain_connector
    builds one from plaintext credentials (before a store exists).
    """

    def __init__(self, store_repo: StoreRepository = None, connector_factory=None, plain_connector=None):
        self.store_repo = store_repo or StoreRepository()
        self.connector_factory = connector_factory or build_connector
        self.plain_connector = plain_connector or WooCommerceConnector

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_store(self, store_id: int, company_id: Optional[int] = None) -> WooCommerceStore:
        """
        Get a store, optionally scoped to a company

        Raises:
            NotFoundError: If the store does not exist (or belongs to another company)
        """
        store = self.store_repo.find_by_id(store_id, company_id=company_id)
        if not store:
            raise NotFoundError("WooCommerce store not found", "WOOCOMMERCE_STORE_NOT_FOUND")
        return store

    def get_store_by_url(self, company_id: int, store_url: str) -> Optional[WooCommerceStore]:
        return self.store_repo.find_by_company_and_url(
            company_id, normalize_store_url(store_url), active_only=True
        )

    def get_active_stores(self, company_id: int) -> List[WooCommerceStore]:
        return self.store_repo.find_active(company_id=company_id)

    # =========================================================================
    # Installation
    # =========================================================================

    async def test_connection(self, store_url: str, consumer_key: str, consumer_secret: str) -> bool:
        """
        Check that the credentials can read the store

        Raises:
            AppError: 400 WOOCOMMERCE_CONNECTION_FAILED
        """
        connector = self.plain_connector(normalize_store_url(store_url), consumer_key, consumer_secret)
        if not await connector.test_connection():
            raise AppError("Failed to connect to WooCommerce store", "WOOCOMMERCE_CONNECTION_FAILED", 400)

        logger.info(f"WooCommerce connection test successful for {store_url}")
        return True

    async def install_store(
        self,
        company_id: int,
        store_url: str,
        consumer_key: str,
        consumer_secret: str,
        store_name: str = None
    ) -> WooCommerceStore:
        """
        Connect a WooCommerce store to a company

        A previously disconnected store with the same URL is reactivated with
        the new credentials. Webhook registration is left to the caller (it
        runs as a background task).

        Raises:
            AppError: 400 WOOCOMMERCE_CONNECTION_FAILED,
                      400 WOOCOMMERCE_STORE_ALREADY_EXISTS,
                      500 WOOCOMMERCE_INSTALLATION_FAILED
        """
        store_url = normalize_store_url(store_url)

        try:
            await self.test_connection(store_url, consumer_key, consumer_secret)

            connector = self.plain_connector(store_url, consumer_key, consumer_secret)
            info = await connector.get_store_info()

            existing = self.store_repo.find_by_company_and_url(company_id, store_url)
            if existing and existing.is_active:
                raise ConflictError("WooCommerce store already connected", "WOOCOMMERCE_STORE_ALREADY_EXISTS")

            if existing:
                store = self.store_repo.update_fields(existing.id, {
                    'store_name': store_name or existing.store_name or info.get('site_url'),
                    'consumer_key': encrypt_value(consumer_key),
                    'consumer_secret': encrypt_value(consumer_secret),
                    'wp_version': info.get('wp_version'),
                    'wc_version': info.get('wc_version'),
                    'currency': info.get('currency'),
                    'timezone': info.get('timezone'),
                    'is_active': True,
                    'is_paused': False,
                    'installed_at': datetime.now(timezone.utc),
                    'uninstalled_at': None,
                })
                logger.info(f"WooCommerce store {store.id} reconnected for company {company_id}")
                return store

            store = self.store_repo.create(
                company_id=company_id,
                store_url=store_url,
                store_name=store_name or info.get('site_url') or store_url,
                consumer_key=encrypt_value(consumer_key),
                consumer_secret=encrypt_value(consumer_secret),
                api_version=settings.WOOCOMMERCE_API_VERSION,
                wp_version=info.get('wp_version'),
                wc_version=info.get('wc_version'),
                currency=info.get('currency'),
                timezone=info.get('timezone'),
                sync_config=SyncConfig(),
            )

            logger.info(f"WooCommerce store {store.id} installed for company {company_id} ({store_url})")
            return store

        except AppError:
            raise
        except Exception as e:
            logger.error(f"Failed to install WooCommerce store {store_url} for company {company_id}: {e}")
            raise AppError(
                f"Failed to install WooCommerce store: {e}",
                "WOOCOMMERCE_INSTALLATION_FAILED",
                500
            )

    # =========================================================================
    # Webhooks
    # =========================================================================

    async def register_webhooks(self, store_id: int) -> List[Dict]:
        """
        Register one webhook per topic on the store

        Topics that already have an active registration are left alone.
        A failure on one topic is reported in the result, not raised.

        Returns:
            [{topic, success, webhook_id | error}, ...]
        """
        store = self.get_store(store_id)
        connector = self.connector_factory(store)

        registered = {w.topic for w in store.webhooks if w.is_active}
        webhooks = list(store.webhooks)
        results = []

        for topic in WEBHOOK_TOPICS:
            if topic in registered:
                results.append({'topic': topic, 'success': True, 'skipped': True})
                continue

            secret = self.generate_webhook_secret()
            address = webhook_delivery_url(topic)

            try:
                response = await connector.post('webhooks', {
                    'name': f"Shipcrowd - {topic}",
                    'topic': topic,
                    'delivery_url': address,
                    'secret': secret,
                    'status': 'active',
                })
                webhook_id = str(response['id'])
                webhooks.append(WebhookRegistration(
                    topic=topic,
                    woocommerce_webhook_id=webhook_id,
                    address=address,
                    secret=secret,
                    is_active=True,
                    created_at=datetime.now(timezone.utc),
                ))
                results.append({'topic': topic, 'success': True, 'webhook_id': webhook_id})
                logger.info(f"Registered WooCommerce webhook {topic} ({webhook_id}) for store {store_id}")

            except (WooCommerceAPIError, KeyError, ValueError) as e:
                logger.error(f"Failed to register WooCommerce webhook {topic} for store {store_id}: {e}")
                results.append({'topic': topic, 'success': False, 'error': str(e)})

        self.store_repo.set_webhooks(store_id, webhooks)

        succeeded = sum(1 for r in results if r['success'])
        logger.info(f"WooCommerce webhooks for store {store_id}: {succeeded} ok, {len(results) - succeeded} failed")
        return results

    async def unregister_webhooks(self, store_id: int) -> None:
        """Delete every registered webhook from the store and forget them"""
        store = self.get_store(store_id)
        connector = self.connector_factory(store)

        for webhook in store.webhooks:
            try:
                await connector.delete(f"webhooks/{webhook.woocommerce_webhook_id}")
                logger.info(f"Unregistered WooCommerce webhook {webhook.topic} for store {store_id}")
            except WooCommerceAPIError as e:
                logger.warning(
                    f"Failed to unregister WooCommerce webhook {webhook.woocommerce_webhook_id} "
                    f"({webhook.topic}) for store {store_id}: {e}"
                )

        self.store_repo.set_webhooks(store_id, [])

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def disconnect_store(self, store_id: int, company_id: Optional[int] = None) -> None:
        """Unregister webhooks and deactivate the store"""
        self.get_store(store_id, company_id=company_id)
        await self.unregister_webhooks(store_id)
        self.store_repo.update_fields(store_id, {
            'is_active': False,
            'uninstalled_at': datetime.now(timezone.utc),
        })
        logger.info(f"WooCommerce store {store_id} disconnected")

    async def refresh_connection(
        self,
        store_id: int,
        consumer_key: str,
        consumer_secret: str,
        company_id: Optional[int] = None
    ) -> WooCommerceStore:
        """Replace the store's credentials after testing them"""
        store = self.get_store(store_id, company_id=company_id)
        await self.test_connection(store.store_url, consumer_key, consumer_secret)

        store = self.store_repo.update_fields(store_id, {
            'consumer_key': encrypt_value(consumer_key),
            'consumer_secret': encrypt_value(consumer_secret),
        })
        logger.info(f"WooCommerce connection refreshed for store {store_id}")
        return store

    def pause_sync(self, store_id: int, company_id: Optional[int] = None) -> WooCommerceStore:
        self.get_store(store_id, company_id=company_id)
        store = self.store_repo.update_fields(store_id, {'is_paused': True})
        logger.info(f"WooCommerce sync paused for store {store_id}")
        return store

    def resume_sync(self, store_id: int, company_id: Optional[int] = None) -> WooCommerceStore:
        self.get_store(store_id, company_id=company_id)
        store = self.store_repo.update_fields(store_id, {'is_paused': False})
        logger.info(f"WooCommerce sync resumed for store {store_id}")
        return store

    def update_order_sync_settings(
        self,
        store_id: int,
        company_id: Optional[int] = None,
        enabled: Optional[bool] = None,
        auto_sync: Optional[bool] = None,
        sync_interval: Optional[int] = None
    ) -> WooCommerceStore:
        """Change the order sync switches; fields left as None are kept"""
        store = self.get_store(store_id, company_id=company_id)
        order_sync = store.sync_config.order_sync

        if enabled is not None:
            order_sync.enabled = enabled
        if auto_sync is not None:
            order_sync.auto_sync = auto_sync
        if sync_interval is not None:
            order_sync.sync_interval = sync_interval

        self.store_repo.update_sync_config(store_id, store.sync_config)
        logger.info(
            f"WooCommerce order sync settings for store {store_id}: enabled={order_sync.enabled}, "
            f"auto_sync={order_sync.auto_sync}, interval={order_sync.sync_interval}m"
        )
        return store

    # =========================================================================
    # Signatures
    # =========================================================================

    @staticmethod
    def verify_webhook_signature(payload: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
        """
        Verify X-WC-Webhook-Signature

        WooCommerce signs the raw body: base64(HMAC-SHA256(secret, body)).
        """
        if not signature or not secret:
            return False
        if isinstance(payload, str):
            payload = payload.encode('utf-8')

        expected = base64.b64encode(
            hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).digest()
        ).decode('ascii')
        return hmac.compare_digest(expected, signature.strip())

    @staticmethod
    def generate_webhook_secret() -> str:
        return secrets.token_hex(32)
