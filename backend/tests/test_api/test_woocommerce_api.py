"""
API tests for the WooCommerce, webhook, sync and health endpoints

Services are replaced with mocks; no database or store is contacted.

Author: TM3
Date: 2026-02-12
"""
import json
from unittest.mock import MagicMock, AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from shipcrowd.api import sync as sync_api
from shipcrowd.api import webhooks as webhooks_api
from shipcrowd.api import woocommerce as woocommerce_api
from shipcrowd.core.auth import get_company_id
from shipcrowd.core.config import settings
from shipcrowd.core.exceptions import NotFoundError
from shipcrowd.main import app
from shipcrowd.services.woocommerce_webhook_service import WooCommerceWebhookService

API = "/api/v1/integrations/woocommerce"


@pytest.fixture
def client():
    app.dependency_overrides[get_company_id] = lambda: 42
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def store_service():
    with patch.object(woocommerce_api, 'store_service') as mock_service:
        yield mock_service


class TestStoreEndpoints:

    def test_requires_authentication(self):
        response = TestClient(app).get(f"{API}/stores")

        assert response.status_code == 401

    def test_install_hides_credentials_and_registers_webhooks(self, client, store_service, store):
        store_service.install_store = AsyncMock(return_value=store)
        store_service.register_webhooks = AsyncMock(return_value=[])

        response = client.post(f"{API}/stores", json={
            "store_url": "https://shop.example.com",
            "consumer_key": "ck_live",
            "consumer_secret": "cs_live",
        })

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["id"] == 7
        assert "consumer_key" not in data
        assert "consumer_secret" not in data
        assert all("secret" not in webhook for webhook in data["webhooks"])
        store_service.install_store.assert_awaited_once_with(
            42, "https://shop.example.com", "ck_live", "cs_live", None
        )
        store_service.register_webhooks.assert_awaited_once_with(7)

    def test_app_error_is_rendered_as_envelope(self, client, store_service):
        store_service.get_store.side_effect = NotFoundError("WooCommerce store not found",
                                                            "WOOCOMMERCE_STORE_NOT_FOUND")

        response = client.get(f"{API}/stores/99")

        assert response.status_code == 404
        assert response.json() == {
            "status": "error",
            "code": "WOOCOMMERCE_STORE_NOT_FOUND",
            "message": "WooCommerce store not found",
            "details": {},
        }
        store_service.get_store.assert_called_once_with(99, company_id=42)

    def test_update_sync_settings(self, client, store_service, store):
        store_service.update_order_sync_settings.return_value = store

        response = client.patch(f"{API}/stores/7/sync-settings", json={"auto_sync": False})

        assert response.status_code == 200
        store_service.update_order_sync_settings.assert_called_once_with(
            7, company_id=42, enabled=None, auto_sync=False, sync_interval=None
        )

    def test_sync_interval_is_validated(self, client, store_service):
        response = client.patch(f"{API}/stores/7/sync-settings", json={"sync_interval": 1})

        assert response.status_code == 422
        store_service.update_order_sync_settings.assert_not_called()


class TestOrderSyncEndpoints:

    def test_trigger_returns_sync_log_and_runs_in_background(self, client, store_service, store):
        store_service.get_store.return_value = store
        with patch.object(woocommerce_api, 'sync_log_repo') as sync_log_repo, \
                patch.object(woocommerce_api, 'order_sync_service') as order_sync_service:
            sync_log_repo.create.return_value = MagicMock(id=55)
            order_sync_service.sync_orders = AsyncMock()

            response = client.post(f"{API}/stores/7/sync/orders")

        assert response.status_code == 202
        assert response.json()["sync_log_id"] == 55
        sync_log_repo.create.assert_called_once_with(7, 'ORDERS')
        order_sync_service.sync_orders.assert_awaited_once_with(7, sync_log_id=55)

    @pytest.mark.parametrize("log_status, closed", [("IN_PROGRESS", True), ("FAILED", False)])
    def test_early_sync_failure_closes_open_sync_log(self, client, store_service, store, log_status, closed):
        store_service.get_store.return_value = store
        with patch.object(woocommerce_api, 'sync_log_repo') as sync_log_repo, \
                patch.object(woocommerce_api, 'order_sync_service') as order_sync_service:
            sync_log_repo.create.return_value = MagicMock(id=55)
            sync_log_repo.find_by_id.return_value = MagicMock(status=log_status)
            order_sync_service.sync_orders = AsyncMock(
                side_effect=NotFoundError("WooCommerce store not found", "WOOCOMMERCE_STORE_NOT_FOUND")
            )

            response = client.post(f"{API}/stores/7/sync/orders")

        assert response.status_code == 202
        sync_log_repo.find_by_id.assert_called_once_with(55, store_id=7)
        if closed:
            sync_log_repo.fail.assert_called_once_with(55, "WooCommerce store not found")
        else:
            sync_log_repo.fail.assert_not_called()

    def test_inactive_store_cannot_sync(self, client, store_service, store):
        store_service.get_store.return_value = store.model_copy(update={'is_active': False})

        response = client.post(f"{API}/stores/7/sync/orders")

        assert response.status_code == 400
        assert response.json()["code"] == "WOOCOMMERCE_STORE_INACTIVE"


class TestMappingEndpoints:

    def test_csv_import_strips_bom(self, client):
        with patch.object(woocommerce_api, 'mapping_service') as mapping_service:
            mapping_service.import_mappings_from_csv.return_value = {'imported': 1, 'failed': 0, 'errors': []}
            csv_bytes = "\ufeffwoocommerce_product_id,woocommerce_sku,internal_sku\n501,TEE-01,INT-TEE\n".encode()

            response = client.post(f"{API}/stores/7/mappings/import", files={"file": ("map.csv", csv_bytes, "text/csv")})

        assert response.status_code == 200
        assert response.json()["data"]["imported"] == 1
        store_id, company_id, csv_data = mapping_service.import_mappings_from_csv.call_args.args
        assert (store_id, company_id) == (7, 42)
        assert csv_data.startswith("woocommerce_product_id,")

    def test_csv_export_is_an_attachment(self, client, store_service):
        with patch.object(woocommerce_api, 'mapping_service') as mapping_service:
            mapping_service.export_mappings_to_csv.return_value = "woocommerce_product_id\n501\n"

            response = client.get(f"{API}/stores/7/mappings/export")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="woocommerce-mappings-7.csv"' in response.headers["content-disposition"]
        assert response.text == "woocommerce_product_id\n501\n"


class TestWebhookEndpoint:

    @pytest.fixture
    def webhook_service(self):
        service = WooCommerceWebhookService(
            store_repo=MagicMock(),
            event_repo=MagicMock(),
            order_sync_service=MagicMock(),
            mapping_service=MagicMock(),
        )
        with patch.object(webhooks_api, 'webhook_service', service):
            yield service

    def test_ping(self, webhook_service):
        response = TestClient(app).post(
            "/api/v1/webhooks/woocommerce/order/created",
            content=b"webhook_id=15",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ping"}

    def test_signed_delivery_is_applied(self, webhook_service, store, woo_order, sign_body):
        webhook_service.store_repo.find_active_by_url.return_value = [store]
        webhook_service.store_repo.find_by_id.return_value = store
        webhook_service.event_repo.record.return_value = 900
        body = json.dumps(woo_order).encode()

        response = TestClient(app).post(
            "/api/v1/webhooks/woocommerce/order/updated",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-WC-Webhook-Source": "https://shop.example.com/",
                "X-WC-Webhook-Topic": "order.updated",
                "X-WC-Webhook-Signature": sign_body(body, "secret-order.updated"),
                "X-WC-Webhook-Delivery-ID": "delivery-1",
            },
        )

        assert response.status_code == 200
        assert response.json() == {"status": "accepted", "topic": "order.updated", "event_id": 900}
        webhook_service.order_sync_service.upsert_from_payload.assert_called_once_with(store, woo_order)
        webhook_service.event_repo.mark.assert_called_once_with(900, 'PROCESSED')

    def test_bad_signature_is_rejected(self, webhook_service, store):
        webhook_service.store_repo.find_active_by_url.return_value = [store]

        response = TestClient(app).post(
            "/api/v1/webhooks/woocommerce/order/updated",
            content=b'{"id": 1001}',
            headers={
                "X-WC-Webhook-Source": "https://shop.example.com",
                "X-WC-Webhook-Topic": "order.updated",
                "X-WC-Webhook-Signature": "forged",
            },
        )

        assert response.status_code == 401
        assert response.json()["code"] == "WEBHOOK_SIGNATURE_INVALID"
        webhook_service.event_repo.record.assert_not_called()


class TestSyncEndpoints:

    def test_status_is_public_and_has_no_urls(self, store):
        with patch.object(sync_api, 'store_repo') as store_repo:
            store_repo.find_active.return_value = [store]

            response = TestClient(app).get("/api/v1/sync/status")

        assert response.status_code == 200
        body = response.json()
        assert body["active_stores"] == 1
        assert body["stores"][0]["store_id"] == 7
        assert body["stores"][0]["sync_status"] == "IDLE"
        assert "shop.example.com" not in response.text

    def test_run_requires_sync_key(self):
        with patch.object(settings, 'SYNC_API_KEY', 'cron-key'):
            missing = TestClient(app).post("/api/v1/sync/woocommerce/orders")
            wrong = TestClient(app).post("/api/v1/sync/woocommerce/orders", headers={"X-Sync-Key": "nope"})

        assert missing.status_code == 401
        assert wrong.status_code == 401

    def test_run_syncs_all_stores(self):
        summary = {'store_id': 7, 'success': True, 'status': 'COMPLETED', 'sync_log_id': 55,
                   'items_synced': 3, 'items_skipped': 1, 'items_failed': 0}
        with patch.object(settings, 'SYNC_API_KEY', 'cron-key'), \
                patch.object(sync_api, 'order_sync_service') as order_sync_service:
            order_sync_service.sync_all_active_stores = AsyncMock(return_value=[summary])

            response = TestClient(app).post(
                "/api/v1/sync/woocommerce/orders?hours_back=6", headers={"X-Sync-Key": "cron-key"}
            )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Synced 1/1 stores"
        assert body["stores"] == [summary]
        order_sync_service.sync_all_active_stores.assert_awaited_once_with(6)


class TestHealth:

    def test_degraded_without_database(self):
        with patch('shipcrowd.main.get_db_connection_with_retry', side_effect=Exception("could not connect")):
            response = TestClient(app).get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["database"]["status"] == "disconnected"
        assert body["database"]["error"] == "could not connect"
