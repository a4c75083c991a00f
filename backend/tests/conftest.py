"""
Pytest fixtures and configuration for Shipcrowd Backend tests

This file provides shared fixtures that can be used across all test modules.
Nothing here needs a database or a live WooCommerce store.

Author: TM3
Date: 2026-02-12
"""
import base64
import hashlib
import hmac
from datetime import datetime, timezone

import pytest

from shipcrowd.domain.order import Order
from shipcrowd.domain.store import WooCommerceStore, WebhookRegistration
from shipcrowd.services.woocommerce_store_service import WEBHOOK_TOPICS


class FakeConnector:
    """
    In-memory WooCommerce connector

    pages: what paginate() yields (an Exception in the list is raised)
    responses: {(method, endpoint): value}; an Exception value is raised
    """

    def __init__(self, pages=None, responses=None):
        self.pages = pages or []
        self.responses = responses or {}
        self.calls = []

    def _respond(self, method, endpoint, payload=None):
        self.calls.append((method, endpoint, payload))
        response = self.responses.get((method, endpoint))
        if isinstance(response, Exception):
            raise response
        return response

    async def paginate(self, endpoint, params=None, per_page=None):
        self.calls.append(('PAGINATE', endpoint, params))
        for page in self.pages:
            if isinstance(page, Exception):
                raise page
            yield page

    async def get_all(self, endpoint, params=None, per_page=None):
        records = []
        async for page in self.paginate(endpoint, params=params):
            records.extend(page)
        return records

    async def get(self, endpoint, params=None):
        return self._respond('GET', endpoint, params)

    async def post(self, endpoint, data=None):
        return self._respond('POST', endpoint, data)

    async def put(self, endpoint, data=None):
        return self._respond('PUT', endpoint, data)

    async def delete(self, endpoint, force=True):
        return self._respond('DELETE', endpoint)


def sign(body: bytes, secret: str) -> str:
    """X-WC-Webhook-Signature for a body, as WooCommerce computes it"""
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


@pytest.fixture
def store():
    """
    Active store of company 42 with a webhook registered for every topic

    Webhook secrets are 'secret-<topic>'.
    """
    registered_at = datetime(2026, 2, 1, tzinfo=timezone.utc)
    return WooCommerceStore(
        id=7,
        company_id=42,
        store_url="https://shop.example.com",
        store_name="Example Shop",
        consumer_key="encrypted-key",
        consumer_secret="encrypted-secret",
        webhooks=[
            WebhookRegistration(
                topic=topic,
                woocommerce_webhook_id=str(100 + index),
                address=f"https://api.shipcrowd.com/api/v1/webhooks/woocommerce/{topic.replace('.', '/')}",
                secret=f"secret-{topic}",
                created_at=registered_at,
            )
            for index, topic in enumerate(WEBHOOK_TOPICS)
        ],
    )


@pytest.fixture
def woo_order():
    """
    Provides a WooCommerce order as returned by GET /orders/1001
    """
    return {
        "id": 1001,
        "number": "1001",
        "status": "processing",
        "currency": "INR",
        "date_created": "2026-03-01T10:00:00",
        "date_created_gmt": "2026-03-01T04:30:00",
        "date_modified": "2026-03-02T11:00:00",
        "date_modified_gmt": "2026-03-02T05:30:00",
        "discount_total": "50.00",
        "shipping_total": "40.00",
        "total": "1180.00",
        "total_tax": "180.00",
        "customer_note": "Leave at the door",
        "billing": {
            "first_name": "Asha",
            "last_name": "Rao",
            "address_1": "12 MG Road",
            "city": "Bengaluru",
            "state": "KA",
            "postcode": "560001",
            "country": "IN",
            "email": "asha@example.com",
            "phone": "9876543210",
        },
        "shipping": {
            "first_name": "Asha",
            "last_name": "Rao",
            "address_1": "44 Residency Road",
            "address_2": "Flat 3",
            "city": "Bengaluru",
            "state": "KA",
            "postcode": "560025",
            "country": "IN",
        },
        "payment_method": "cod",
        "payment_method_title": "Cash on delivery",
        "line_items": [
            {
                "id": 1,
                "name": "Cotton Tee",
                "product_id": 501,
                "variation_id": 0,
                "quantity": 2,
                "sku": "TEE-01",
                "price": 400,
                "image": {"id": 9, "src": "https://shop.example.com/tee.jpg"},
            },
            {
                "id": 2,
                "name": "Denim Cap - Blue",
                "product_id": 502,
                "variation_id": 611,
                "quantity": 1,
                "sku": "",
                "price": "200.00",
            },
        ],
        "shipping_lines": [{"id": 1, "method_title": "Express", "method_id": "flat_rate"}],
    }


@pytest.fixture
def stored_order():
    """
    Factory for an Order as the repository returns it

    Defaults describe WooCommerce order 1001 of store 7 / company 42.
    """
    def build(**overrides):
        data = {
            "id": 1,
            "company_id": 42,
            "order_number": "WOO-1001",
            "source": "woocommerce",
            "source_id": "1001",
            "customer_info": {"name": "Asha Rao"},
            "current_status": "PROCESSING",
            "woocommerce_store_id": 7,
            "woocommerce_order_id": 1001,
            "created_at": datetime(2026, 3, 1, 4, 30, tzinfo=timezone.utc),
            "updated_at": datetime(2026, 3, 1, 4, 30, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return Order(**data)

    return build


@pytest.fixture
def fake_connector():
    """Factory for FakeConnector: fake_connector(pages=..., responses=...)"""
    return FakeConnector


@pytest.fixture
def sign_body():
    return sign
