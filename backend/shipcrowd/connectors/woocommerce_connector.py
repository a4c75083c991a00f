"""
WooCommerce REST API Connector
Handles all HTTP interactions with a WooCommerce store (REST API v3)

Auth is HTTP Basic with the store's consumer key / secret, which WooCommerce
accepts over HTTPS.

Author: TM3
Date: 2026-02-09
"""
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from shipcrowd.core.config import settings
from shipcrowd.core.exceptions import IntegrationError

logger = logging.getLogger(__name__)


class WooCommerceAPIError(Exception):
    """HTTP error returned by a WooCommerce store"""

    def __init__(self, status_code: int, url: str, message: str, payload: Any = None):
        self.status_code = status_code
        self.url = url
        self.message = message
        self.payload = payload
        super().__init__(f"WooCommerce API error {status_code} on {url}: {message}")

    def as_app_error(self) -> IntegrationError:
        """502 for API callers; the store's own status stays in details"""
        return IntegrationError(
            f"WooCommerce request failed: {self.message}",
            "WOOCOMMERCE_REQUEST_FAILED",
            details={'status_code': self.status_code, 'url': self.url},
        )


class WooCommerceConnector:
    """
    Connector for the WooCommerce REST API

    Handles:
    - Orders, products, variations, webhooks (generic get/post/put/delete)
    - Page iteration driven by X-WP-TotalPages
    - Connection test / store info (system_status)
    """

    def __init__(
        self,
        store_url: str,
        consumer_key: str,
        consumer_secret: str,
        api_version: str = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None
    ):
        """
        Initialize WooCommerce connector

        Args:
            store_url: Store base URL (e.g., 'https://shop.example.com')
            consumer_key: REST API consumer key (ck_...)
            consumer_secret: REST API consumer secret (cs_...)
            api_version: REST namespace (default from settings, 'wc/v3')
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if not store_url or not consumer_key or not consumer_secret:
            raise ValueError("WooCommerce credentials not configured. Store URL, consumer key and secret are required")

        self.store_url = store_url.rstrip('/')
        self.api_version = api_version or settings.WOOCOMMERCE_API_VERSION
        self.api_url = f"{self.store_url}/wp-json/{self.api_version}"
        self.auth = (consumer_key, consumer_secret)
        self.timeout = timeout or settings.WOOCOMMERCE_TIMEOUT
        self.transport = transport
        self.headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=self.auth,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Dict = None,
        json: Any = None
    ) -> httpx.Response:
        """Send a request and raise WooCommerceAPIError on HTTP >= 400"""
        url = f"{self.api_url}/{endpoint.lstrip('/')}"

        async with self._client() as client:
            response = await client.request(method, url, params=params, json=json)

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            message = payload.get('message') if isinstance(payload, dict) else None
            logger.warning(f"WooCommerce {method} {url} failed with {response.status_code}: {message or payload}")
            raise WooCommerceAPIError(
                response.status_code,
                url,
                message or response.reason_phrase or "Request failed",
                payload,
            )

        return response

    async def get(self, endpoint: str, params: Dict = None) -> Any:
        response = await self._request('GET', endpoint, params=params)
        return response.json()

    async def post(self, endpoint: str, data: Dict = None) -> Any:
        response = await self._request('POST', endpoint, json=data or {})
        return response.json()

    async def put(self, endpoint: str, data: Dict = None) -> Any:
        response = await self._request('PUT', endpoint, json=data or {})
        return response.json()

    async def delete(self, endpoint: str, force: bool = True) -> Any:
        response = await self._request('DELETE', endpoint, params={'force': 'true' if force else 'false'})
        return response.json()

    async def paginate(
        self,
        endpoint: str,
        params: Dict = None,
        per_page: int = None
    ) -> AsyncIterator[List[Dict]]:
        """
        Iterate over every page of a collection endpoint

        Stops on an empty page or once the page number reaches the
        X-WP-TotalPages header.

        Yields:
            One list of records per page
        """
        per_page = per_page or settings.WOOCOMMERCE_PAGE_SIZE
        page = 1

        while True:
            query = dict(params or {})
            query.update({'page': page, 'per_page': per_page})

            response = await self._request('GET', endpoint, params=query)
            records = response.json() or []

            if not records:
                break

            yield records

            total_pages = response.headers.get('X-WP-TotalPages', '')
            if total_pages.isdigit():
                if page >= int(total_pages):
                    break
            elif len(records) < per_page:
                break

            page += 1

    async def get_all(self, endpoint: str, params: Dict = None, per_page: int = None) -> List[Dict]:
        """Fetch every record of a collection endpoint"""
        records = []
        async for page in self.paginate(endpoint, params=params, per_page=per_page):
            records.extend(page)
        return records

    async def test_connection(self) -> bool:
        """Return True if the store answers /system_status with these credentials"""
        try:
            await self.get('system_status')
            return True
        except (WooCommerceAPIError, httpx.HTTPError) as e:
            logger.warning(f"WooCommerce connection test failed for {self.store_url}: {e}")
            return False

    async def get_store_info(self) -> Dict:
        """
        Store environment and settings

        Returns:
            Dict with site_url, wp_version, wc_version, currency, timezone
        """
        status = await self.get('system_status')
        environment = status.get('environment') or {}
        store_settings = status.get('settings') or {}

        return {
            'site_url': environment.get('site_url'),
            'wp_version': environment.get('wp_version'),
            'wc_version': environment.get('version'),
            'currency': store_settings.get('currency'),
            'timezone': environment.get('default_timezone'),
        }
