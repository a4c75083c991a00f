"""
Unit tests for WooCommerceWebhookService

Author: TM3
Date: 2026-02-12
"""
import asyncio
import hashlib
import json
from unittest.mock import MagicMock, AsyncMock

import pytest

from shipcrowd.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from shipcrowd.services.woocommerce_webhook_service import WooCommerceWebhookService, delivery_key


@pytest.fixture
def service():
    mapping_service = MagicMock()
    mapping_service.auto_map_product = AsyncMock(return_value={'mapped': 1})
    return WooCommerceWebhookService(
        store_repo=MagicMock(),
        event_repo=MagicMock(),
        order_sync_service=MagicMock(),
        mapping_service=mapping_service,
    )


class TestReceive:
    """Request-path handling: pings, authentication, idempotency"""

    def test_ping_is_acknowledged_without_lookup(self, service):
        receipt = service.receive(b"webhook_id=15", source=None, topic=None, signature=None)

        assert receipt.status == 'ping'
        assert receipt.to_response() == {'status': 'ping'}
        service.store_repo.find_active_by_url.assert_not_called()

    def test_missing_source_is_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.receive(b'{"id": 1}', source=None, topic="order.updated", signature="x")
        assert exc_info.value.code == "WEBHOOK_SOURCE_MISSING"

    def test_unsupported_topic_is_ignored(self, service):
        receipt = service.receive(b'{"id": 1}', source="https://shop.example.com", topic="coupon.created",
                                  signature="x")

        assert receipt.status == 'ignored'
        service.event_repo.record.assert_not_called()

    def test_valid_delivery_is_recorded_and_accepted(self, service, store, woo_order, sign_body):
        body = json.dumps(woo_order).encode()
        service.store_repo.find_active_by_url.return_value = [store]
        service.event_repo.record.return_value = 900

        receipt = service.receive(
            body,
            source="shop.example.com/",
            topic="order.updated",
            signature=sign_body(body, "secret-order.updated"),
            delivery_id="delivery-1",
        )

        assert receipt.status == 'accepted'
        assert receipt.store_id == 7
        assert receipt.event_id == 900
        assert receipt.payload['id'] == 1001
        assert receipt.to_response() == {'status': 'accepted', 'topic': 'order.updated', 'event_id': 900}
        service.store_repo.find_active_by_url.assert_called_once_with("https://shop.example.com")
        service.event_repo.record.assert_called_once_with(7, "delivery-1", "order.updated", 1001)

    def test_redelivery_is_reported_as_duplicate(self, service, store, woo_order, sign_body):
        body = json.dumps(woo_order).encode()
        service.store_repo.find_active_by_url.return_value = [store]
        service.event_repo.record.return_value = None

        receipt = service.receive(body, "https://shop.example.com", "order.updated",
                                  sign_body(body, "secret-order.updated"), delivery_id="delivery-1")

        assert receipt.status == 'duplicate'
        assert receipt.event_id is None

    def test_body_hash_is_the_key_without_delivery_id(self, service, store, sign_body):
        body = b'{"id": 1001, "status": "processing"}'
        service.store_repo.find_active_by_url.return_value = [store]
        service.event_repo.record.return_value = 901

        service.receive(body, "https://shop.example.com", "order.updated", sign_body(body, "secret-order.updated"))

        key = service.event_repo.record.call_args.args[1]
        assert key == hashlib.sha256(body).hexdigest()

    def test_invalid_signature_is_rejected(self, service, store, sign_body):
        body = b'{"id": 1001}'
        service.store_repo.find_active_by_url.return_value = [store]

        with pytest.raises(AuthenticationError) as exc_info:
            service.receive(body, "https://shop.example.com", "order.updated", sign_body(body, "wrong-secret"))

        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "WEBHOOK_SIGNATURE_INVALID"
        service.event_repo.record.assert_not_called()

    def test_unknown_store_is_not_found(self, service, sign_body):
        service.store_repo.find_active_by_url.return_value = []

        with pytest.raises(NotFoundError):
            service.receive(b'{"id": 1}', "https://unknown.example.com", "order.created", "sig")

    def test_store_is_picked_by_matching_secret(self, service, store, sign_body):
        other_tenant = store.model_copy(deep=True, update={'id': 8, 'company_id': 43})
        for webhook in other_tenant.webhooks:
            webhook.secret = f"tenant-43-{webhook.topic}"
        service.store_repo.find_active_by_url.return_value = [store, other_tenant]
        service.event_repo.record.return_value = 902
        body = b'{"id": 1001}'

        receipt = service.receive(body, "https://shop.example.com", "order.created",
                                  sign_body(body, "tenant-43-order.created"), delivery_id="d-2")

        assert receipt.store_id == 8

    def test_signed_non_json_body_is_rejected(self, service, store, sign_body):
        body = b"not json"
        service.store_repo.find_active_by_url.return_value = [store]

        with pytest.raises(ValidationError) as exc_info:
            service.receive(body, "https://shop.example.com", "order.created", sign_body(body, "secret-order.created"))

        assert exc_info.value.code == "INVALID_WEBHOOK_PAYLOAD"

    def test_delivery_key_strips_header_value(self):
        assert delivery_key("  abc-123 ", b"{}") == "abc-123"
        assert delivery_key("   ", b"{}") == hashlib.sha256(b"{}").hexdigest()


class TestProcess:
    """Background application of recorded events"""

    def test_order_update_upserts_order(self, service, store, woo_order):
        service.store_repo.find_by_id.return_value = store

        status = asyncio.run(service.process(900, 7, "order.updated", woo_order))

        assert status == 'PROCESSED'
        service.order_sync_service.upsert_from_payload.assert_called_once_with(store, woo_order)
        service.event_repo.mark.assert_called_once_with(900, 'PROCESSED')

    def test_order_deleted_cancels_order(self, service, store):
        service.store_repo.find_by_id.return_value = store

        asyncio.run(service.process(900, 7, "order.deleted", {"id": 1001}))

        service.order_sync_service.cancel_order.assert_called_once_with(1001, 42)

    def test_product_events_update_mappings(self, service, store):
        service.store_repo.find_by_id.return_value = store
        product = {"id": 501, "name": "Cotton Tee", "sku": "TEE-01"}

        asyncio.run(service.process(901, 7, "product.created", product))
        asyncio.run(service.process(902, 7, "product.updated", product))
        asyncio.run(service.process(903, 7, "product.deleted", {"id": 501}))

        service.mapping_service.auto_map_product.assert_awaited_once_with(store, product)
        service.mapping_service.update_from_product.assert_called_once_with(store, product)
        service.mapping_service.deactivate_product.assert_called_once_with(store, 501)

    def test_customer_events_are_ignored(self, service, store):
        service.store_repo.find_by_id.return_value = store

        status = asyncio.run(service.process(904, 7, "customer.created", {"id": 3}))

        assert status == 'IGNORED'
        service.event_repo.mark.assert_called_once_with(904, 'IGNORED')

    def test_paused_store_ignores_order_events(self, service, store, woo_order):
        service.store_repo.find_by_id.return_value = store.model_copy(update={'is_paused': True})

        status = asyncio.run(service.process(905, 7, "order.created", woo_order))

        assert status == 'IGNORED'
        service.order_sync_service.upsert_from_payload.assert_not_called()

    def test_disconnected_store_ignores_events(self, service, store, woo_order):
        service.store_repo.find_by_id.return_value = store.model_copy(update={'is_active': False})

        assert asyncio.run(service.process(906, 7, "order.created", woo_order)) == 'IGNORED'

    def test_failure_is_recorded_on_event(self, service, store, woo_order):
        service.store_repo.find_by_id.return_value = store
        service.order_sync_service.upsert_from_payload.side_effect = Exception("database unavailable")

        status = asyncio.run(service.process(907, 7, "order.created", woo_order))

        assert status == 'FAILED'
        service.event_repo.mark.assert_called_once_with(907, 'FAILED', "database unavailable")
