"""
Tests for WooCommerceConnector against an in-process httpx transport

Author: TM3
Date: 2026-02-12
"""
import asyncio
import base64
import json

import httpx
import pytest

from shipcrowd.connectors.woocommerce_connector import WooCommerceConnector, WooCommerceAPIError


def make_connector(handler, **kwargs) -> WooCommerceConnector:
    return WooCommerceConnector(
        "https://shop.example.com/",
        "ck_test",
        "cs_test",
        transport=httpx.MockTransport(handler),
        **kwargs
    )


async def collect(connector, endpoint, **kwargs):
    pages = []
    async for page in connector.paginate(endpoint, **kwargs):
        pages.append(page)
    return pages


class TestRequests:

    def test_builds_url_and_basic_auth(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": 1001})

        connector = make_connector(handler)
        assert asyncio.run(connector.get('orders/1001')) == {"id": 1001}

        request = seen[0]
        assert request.url.path == "/wp-json/wc/v3/orders/1001"
        expected = base64.b64encode(b"ck_test:cs_test").decode()
        assert request.headers['Authorization'] == f"Basic {expected}"

    def test_error_response_raises_with_store_message(self):
        def handler(request):
            return httpx.Response(401, json={
                "code": "woocommerce_rest_cannot_view",
                "message": "Sorry, you cannot list resources.",
            })

        connector = make_connector(handler)

        with pytest.raises(WooCommerceAPIError) as exc_info:
            asyncio.run(connector.get('orders'))

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Sorry, you cannot list resources."
        assert exc_info.value.payload['code'] == "woocommerce_rest_cannot_view"

    def test_delete_forces_removal(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": 100})

        asyncio.run(make_connector(handler).delete('webhooks/100'))

        assert seen[0].method == "DELETE"
        assert seen[0].url.params['force'] == 'true'

    def test_post_sends_json_body(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"id": 55})

        result = asyncio.run(make_connector(handler).post('orders/1001/notes', {'note': 'Shipped'}))

        assert result == {"id": 55}
        assert json.loads(seen[0].content) == {'note': 'Shipped'}

    def test_missing_credentials(self):
        with pytest.raises(ValueError):
            WooCommerceConnector("https://shop.example.com", "", "cs_test")

    def test_custom_api_version(self):
        connector = WooCommerceConnector("https://shop.example.com", "ck", "cs", api_version="wc/v2")
        assert connector.api_url == "https://shop.example.com/wp-json/wc/v2"


class TestPagination:

    def test_follows_total_pages_header(self):
        pages = {1: [{"id": 1}, {"id": 2}], 2: [{"id": 3}, {"id": 4}], 3: [{"id": 5}]}
        requested = []

        def handler(request):
            page = int(request.url.params['page'])
            requested.append(page)
            return httpx.Response(200, json=pages[page], headers={'X-WP-TotalPages': '3'})

        result = asyncio.run(collect(make_connector(handler), 'orders', params={'status': 'processing'}, per_page=2))

        assert [len(p) for p in result] == [2, 2, 1]
        assert requested == [1, 2, 3]

    def test_passes_filters_and_page_size(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[], headers={'X-WP-TotalPages': '0'})

        asyncio.run(collect(make_connector(handler), 'orders', params={'after': '2026-03-01T00:00:00'}, per_page=50))

        params = seen[0].url.params
        assert params['after'] == '2026-03-01T00:00:00'
        assert params['per_page'] == '50'
        assert params['page'] == '1'

    def test_stops_on_short_page_without_header(self):
        pages = {1: [{"id": 1}, {"id": 2}, {"id": 3}], 2: [{"id": 4}]}
        requested = []

        def handler(request):
            page = int(request.url.params['page'])
            requested.append(page)
            return httpx.Response(200, json=pages.get(page, []))

        result = asyncio.run(collect(make_connector(handler), 'products', per_page=3))

        assert requested == [1, 2]
        assert [len(p) for p in result] == [3, 1]

    def test_stops_on_empty_page(self):
        def handler(request):
            return httpx.Response(200, json=[])

        assert asyncio.run(collect(make_connector(handler), 'orders')) == []

    def test_get_all_flattens_pages(self):
        def handler(request):
            page = int(request.url.params['page'])
            return httpx.Response(200, json=[{"id": page}], headers={'X-WP-TotalPages': '2'})

        records = asyncio.run(make_connector(handler).get_all('products', per_page=1))

        assert records == [{"id": 1}, {"id": 2}]


class TestStoreInfo:

    def test_connection_ok(self):
        connector = make_connector(lambda request: httpx.Response(200, json={"environment": {}}))
        assert asyncio.run(connector.test_connection()) is True

    def test_connection_rejected(self):
        connector = make_connector(lambda request: httpx.Response(401, json={"message": "Invalid signature"}))
        assert asyncio.run(connector.test_connection()) is False

    def test_connection_network_error(self):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        assert asyncio.run(make_connector(handler).test_connection()) is False

    def test_store_info(self):
        def handler(request):
            assert request.url.path.endswith("/system_status")
            return httpx.Response(200, json={
                "environment": {
                    "site_url": "https://shop.example.com",
                    "wp_version": "6.7",
                    "version": "9.4.0",
                    "default_timezone": "Asia/Kolkata",
                },
                "settings": {"currency": "INR"},
            })

        info = asyncio.run(make_connector(handler).get_store_info())

        assert info == {
            'site_url': 'https://shop.example.com',
            'wp_version': '6.7',
            'wc_version': '9.4.0',
            'currency': 'INR',
            'timezone': 'Asia/Kolkata',
        }
