"""
Unit tests for WooCommerceProductMappingService

Author: TM3
Date: 2026-02-12
"""
import asyncio
from unittest.mock import MagicMock, AsyncMock

import pytest

from shipcrowd.connectors.woocommerce_connector import WooCommerceAPIError
from shipcrowd.core.exceptions import ConflictError, IntegrationError, ValidationError
from shipcrowd.domain.product_mapping import ProductMapping, ProductMappingCreate
from shipcrowd.services.woocommerce_product_mapping_service import (
    CSV_EXPORT_FIELDS,
    WooCommerceProductMappingService,
)


@pytest.fixture
def connector():
    connector = MagicMock()
    connector.get_all = AsyncMock(return_value=[])
    connector.get = AsyncMock()
    return connector


@pytest.fixture
def service(store, connector):
    store_repo = MagicMock()
    store_repo.find_by_id.return_value = store
    mapping_repo = MagicMock()
    mapping_repo.find_by_woocommerce_id.return_value = None
    return WooCommerceProductMappingService(
        mapping_repo=mapping_repo,
        store_repo=store_repo,
        connector_factory=lambda s: connector,
    )


def make_mapping(**overrides) -> ProductMapping:
    data = {
        'id': 1,
        'company_id': 42,
        'woocommerce_store_id': 7,
        'woocommerce_product_id': 501,
        'woocommerce_sku': 'TEE-01',
        'woocommerce_title': 'Cotton Tee',
        'internal_sku': 'INT-TEE',
    }
    data.update(overrides)
    return ProductMapping(**data)


class TestAutoMapping:

    def test_maps_simple_products_and_variations_by_sku(self, service, connector):
        connector.get_all.return_value = [
            {"id": 501, "name": "Cotton Tee", "type": "simple", "sku": "TEE-01"},
            {"id": 503, "name": "Gift Wrap", "type": "simple", "sku": ""},
            {"id": 502, "name": "Denim Cap", "type": "variable", "variations": [611, 612]},
        ]
        connector.get.side_effect = [
            {"id": 611, "sku": "CAP-BLUE", "attributes": [{"name": "Color", "option": "Blue"}]},
            {"id": 612, "sku": "", "attributes": [{"name": "Color", "option": "Red"}]},
        ]

        result = asyncio.run(service.auto_map_products(7, company_id=42))

        assert result == {'mapped': 2, 'skipped': 2, 'failed': 0, 'unmapped_skus': []}
        connector.get_all.assert_awaited_once_with('products')
        connector.get.assert_any_await('products/502/variations/611')

        first, second = service.mapping_repo.create.call_args_list
        assert first.kwargs['internal_sku'] == 'TEE-01'
        assert first.kwargs['variation_id'] is None
        assert first.kwargs['mapping_type'] == 'AUTO'
        assert second.kwargs['variation_id'] == 611
        assert second.kwargs['woocommerce_title'] == 'Denim Cap - Blue'

        service.store_repo.increment_stat.assert_called_once_with(7, 'total_products_mapped', 2)

    def test_existing_mapping_is_skipped(self, service, connector):
        connector.get_all.return_value = [{"id": 501, "name": "Cotton Tee", "sku": "TEE-01"}]
        service.mapping_repo.find_by_woocommerce_id.return_value = make_mapping()

        result = asyncio.run(service.auto_map_products(7))

        assert result['skipped'] == 1
        service.mapping_repo.create.assert_not_called()
        service.store_repo.increment_stat.assert_not_called()

    def test_failures_are_counted_not_raised(self, service, connector):
        connector.get_all.return_value = [
            {"id": 501, "name": "Cotton Tee", "sku": "TEE-01"},
            {"id": 502, "name": "Denim Cap", "type": "variable", "variations": [611]},
        ]
        connector.get.side_effect = WooCommerceAPIError(404, "https://shop.example.com", "Invalid ID")
        service.mapping_repo.create.side_effect = Exception("deadlock detected")

        result = asyncio.run(service.auto_map_products(7))

        assert result['failed'] == 2
        assert result['unmapped_skus'] == ['TEE-01']

    def test_product_listing_error_is_reported_as_integration_error(self, service, connector):
        connector.get_all.side_effect = WooCommerceAPIError(401, "https://shop.example.com", "Invalid signature")

        with pytest.raises(IntegrationError) as exc_info:
            asyncio.run(service.auto_map_products(7))

        assert exc_info.value.status_code == 502
        assert exc_info.value.details == {'status_code': 401, 'url': "https://shop.example.com"}
        service.mapping_repo.create.assert_not_called()

    def test_single_product_from_webhook(self, service, store):
        result = asyncio.run(service.auto_map_product(store, {"id": 501, "name": "Cotton Tee", "sku": "TEE-01"}))

        assert result['mapped'] == 1
        service.store_repo.increment_stat.assert_called_once_with(7, 'total_products_mapped', 1)


class TestManualMappings:

    def test_duplicate_manual_mapping_is_rejected(self, service):
        service.mapping_repo.find_by_woocommerce_id.return_value = make_mapping()
        data = ProductMappingCreate(woocommerce_product_id=501, woocommerce_sku='TEE-01', internal_sku='INT-TEE')

        with pytest.raises(ConflictError) as exc_info:
            service.create_manual_mapping(7, 42, data)

        assert exc_info.value.code == "MAPPING_ALREADY_EXISTS"

    def test_get_mappings_paginates(self, service):
        service.mapping_repo.find_all.return_value = ([make_mapping()], 120)

        result = service.get_mappings(42, store_id=7, page=3, limit=50)

        assert result['total'] == 120
        assert result['page'] == 3
        assert result['pages'] == 3
        assert service.mapping_repo.find_all.call_args.kwargs['offset'] == 100


class TestCsv:

    def test_import_reports_row_errors(self, service):
        csv_data = (
            "woocommerce_product_id,woocommerce_variation_id,woocommerce_sku,internal_sku\n"
            "501,,TEE-01,INT-TEE\n"
            "abc,,X-1,INT-X\n"
            "503,,MUG-01,\n"
            "502,611,CAP-BLUE,INT-CAP\n"
        )

        result = service.import_mappings_from_csv(7, 42, csv_data)

        assert result['imported'] == 2
        assert result['failed'] == 2
        assert result['errors'][0].startswith("Row 3:")
        assert result['errors'][1].startswith("Row 4:")

        created = service.mapping_repo.create.call_args_list
        assert created[0].kwargs['product_id'] == 501
        assert created[0].kwargs['variation_id'] is None
        assert created[0].kwargs['woocommerce_title'] == 'TEE-01'
        assert created[0].kwargs['mapping_type'] == 'MANUAL'
        assert created[1].kwargs['variation_id'] == 611

    def test_import_reports_existing_mapping(self, service):
        service.mapping_repo.find_by_woocommerce_id.return_value = make_mapping()
        csv_data = "woocommerce_product_id,woocommerce_sku,internal_sku\n501,TEE-01,INT-TEE\n"

        result = service.import_mappings_from_csv(7, 42, csv_data)

        assert result['imported'] == 0
        assert result['errors'] == ["Row 2: Mapping already exists for this product/variation"]

    def test_missing_header_is_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.import_mappings_from_csv(7, 42, "woocommerce_product_id,internal_sku\n501,INT-TEE\n")

        assert exc_info.value.code == "INVALID_CSV_FORMAT"
        assert "woocommerce_sku" in exc_info.value.message

    def test_empty_csv_is_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.import_mappings_from_csv(7, 42, "")

        assert exc_info.value.code == "INVALID_CSV_FORMAT"

    def test_export_writes_header_and_rows(self, service):
        service.mapping_repo.find_all_for_store.return_value = [make_mapping()]

        lines = service.export_mappings_to_csv(7, 42).splitlines()

        assert lines[0] == ",".join(CSV_EXPORT_FIELDS)
        assert lines[1].startswith("501,,TEE-01,Cotton Tee,INT-TEE,")
        assert len(lines) == 2


class TestWebhookHelpers:

    def test_update_from_product_without_sku_is_noop(self, service, store):
        assert service.update_from_product(store, {"id": 501, "name": "Cotton Tee", "sku": ""}) == 0
        service.mapping_repo.update_product_details.assert_not_called()

    def test_update_from_product_refreshes_parent_mapping(self, service, store):
        service.mapping_repo.update_product_details.return_value = 1

        updated = service.update_from_product(store, {"id": 501, "name": "Cotton Tee v2", "sku": "TEE-01B"})

        assert updated == 1
        service.mapping_repo.update_product_details.assert_called_once_with(7, 501, None, "TEE-01B", "Cotton Tee v2")
