"""
WooCommerce Integration API
Store connections, order sync, product mappings and fulfillment push

Endpoints (all under /api/v1/integrations/woocommerce, company-scoped via JWT):
- Stores:      POST /stores, GET /stores, GET /stores/{id}, DELETE /stores/{id},
               POST /test-connection, POST /stores/{id}/pause|resume,
               PUT /stores/{id}/credentials, PATCH /stores/{id}/sync-settings,
               POST /stores/{id}/webhooks
- Sync:        POST /stores/{id}/sync/orders, POST /stores/{id}/sync/orders/{woo_order_id},
               GET /stores/{id}/sync/logs, GET /stores/{id}/sync/logs/{log_id}
- Mappings:    GET /mappings, POST /stores/{id}/mappings, DELETE /mappings/{id},
               PATCH /mappings/{id}/status, POST /stores/{id}/mappings/auto-map,
               POST /stores/{id}/mappings/import, GET /stores/{id}/mappings/export,
               GET /stores/{id}/mappings/stats
- Fulfillment: POST /orders/{id}/status, POST /orders/{id}/tracking-note,
               POST /stores/{id}/fulfillment/sync-pending, POST /shipments/{id}/status

Author: TM3
Date: 2026-02-11
"""
from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field
from typing import Optional
import logging

from shipcrowd.core.auth import get_company_id
from shipcrowd.core.exceptions import AppError, NotFoundError
from shipcrowd.domain.product_mapping import ProductMappingCreate
from shipcrowd.domain.shipment import TrackingInfo
from shipcrowd.domain.store import SyncLogStatus
from shipcrowd.repositories.sync_log_repository import SyncLogRepository
from shipcrowd.services.woocommerce_store_service import WooCommerceStoreService
from shipcrowd.services.woocommerce_order_sync_service import WooCommerceOrderSyncService
from shipcrowd.services.woocommerce_product_mapping_service import WooCommerceProductMappingService
from shipcrowd.services.woocommerce_fulfillment_service import WooCommerceFulfillmentService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/integrations/woocommerce", tags=["WooCommerce"])

store_service = WooCommerceStoreService()
order_sync_service = WooCommerceOrderSyncService()
mapping_service = WooCommerceProductMappingService()
fulfillment_service = WooCommerceFulfillmentService()
sync_log_repo = SyncLogRepository()


# ============================================================================
# Request Models
# ============================================================================

class StoreCredentials(BaseModel):
    store_url: str = Field(..., min_length=1, description="Store URL, e.g. https://shop.example.com")
    consumer_key: str = Field(..., min_length=1)
    consumer_secret: str = Field(..., min_length=1)


class StoreInstallRequest(StoreCredentials):
    store_name: Optional[str] = None


class CredentialsRefreshRequest(BaseModel):
    consumer_key: str = Field(..., min_length=1)
    consumer_secret: str = Field(..., min_length=1)


class OrderSyncSettingsRequest(BaseModel):
    enabled: Optional[bool] = None
    auto_sync: Optional[bool] = None
    sync_interval: Optional[int] = Field(None, ge=5, le=1440, description="Minutes")


class MappingStatusRequest(BaseModel):
    is_active: bool


class OrderStatusRequest(BaseModel):
    status: str = Field(..., description="WooCommerce status: pending, processing, completed, cancelled, ...")
    tracking: Optional[TrackingInfo] = None


class ShipmentStatusRequest(BaseModel):
    status: str


# ============================================================================
# Background jobs
# ============================================================================

async def run_order_sync(store_id: int, sync_log_id: int, hours_back: Optional[int] = None):
    """Background order sync; the sync log is never left IN_PROGRESS"""
    try:
        if hours_back:
            await order_sync_service.sync_recent_orders(store_id, hours_back=hours_back, sync_log_id=sync_log_id)
        else:
            await order_sync_service.sync_orders(store_id, sync_log_id=sync_log_id)
    except Exception as e:
        logger.error(f"Background WooCommerce order sync failed for store {store_id}: {e}")
        try:
            sync_log = sync_log_repo.find_by_id(sync_log_id, store_id=store_id)
            if sync_log and sync_log.status == SyncLogStatus.IN_PROGRESS.value:
                sync_log_repo.fail(sync_log_id, str(e))
        except Exception as log_error:
            logger.error(f"Failed to close sync log {sync_log_id} for store {store_id}: {log_error}")


async def run_webhook_registration(store_id: int):
    try:
        await store_service.register_webhooks(store_id)
    except Exception as e:
        logger.error(f"Failed to register WooCommerce webhooks for store {store_id}: {e}")


# ============================================================================
# Stores
# ============================================================================

@router.post("/test-connection")
async def test_connection(body: StoreCredentials, company_id: int = Depends(get_company_id)):
    """Check WooCommerce credentials without saving them"""
    await store_service.test_connection(body.store_url, body.consumer_key, body.consumer_secret)
    return {"status": "success", "message": "Connection successful"}


@router.post("/stores", status_code=201)
async def install_store(
    body: StoreInstallRequest,
    background_tasks: BackgroundTasks,
    company_id: int = Depends(get_company_id)
):
    """
    Connect a WooCommerce store

    Webhooks are registered in the background once the store is saved.
    """
    store = await store_service.install_store(
        company_id, body.store_url, body.consumer_key, body.consumer_secret, body.store_name
    )
    background_tasks.add_task(run_webhook_registration, store.id)

    return {"status": "success", "data": store.to_public_dict()}


@router.get("/stores")
async def list_stores(company_id: int = Depends(get_company_id)):
    try:
        stores = store_service.get_active_stores(company_id)
        return {
            "status": "success",
            "count": len(stores),
            "data": [store.to_public_dict() for store in stores]
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error listing WooCommerce stores for company {company_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching stores: {str(e)}")


@router.get("/stores/{store_id}")
async def get_store(store_id: int, company_id: int = Depends(get_company_id)):
    store = store_service.get_store(store_id, company_id=company_id)
    return {"status": "success", "data": store.to_public_dict()}


@router.delete("/stores/{store_id}")
async def disconnect_store(store_id: int, company_id: int = Depends(get_company_id)):
    await store_service.disconnect_store(store_id, company_id=company_id)
    return {"status": "success", "message": "Store disconnected"}


@router.post("/stores/{store_id}/pause")
async def pause_sync(store_id: int, company_id: int = Depends(get_company_id)):
    store = store_service.pause_sync(store_id, company_id=company_id)
    return {"status": "success", "data": store.to_public_dict()}


@router.post("/stores/{store_id}/resume")
async def resume_sync(store_id: int, company_id: int = Depends(get_company_id)):
    store = store_service.resume_sync(store_id, company_id=company_id)
    return {"status": "success", "data": store.to_public_dict()}


@router.put("/stores/{store_id}/credentials")
async def refresh_credentials(
    store_id: int,
    body: CredentialsRefreshRequest,
    company_id: int = Depends(get_company_id)
):
    store = await store_service.refresh_connection(
        store_id, body.consumer_key, body.consumer_secret, company_id=company_id
    )
    return {"status": "success", "data": store.to_public_dict()}


@router.patch("/stores/{store_id}/sync-settings")
async def update_sync_settings(
    store_id: int,
    body: OrderSyncSettingsRequest,
    company_id: int = Depends(get_company_id)
):
    store = store_service.update_order_sync_settings(
        store_id,
        company_id=company_id,
        enabled=body.enabled,
        auto_sync=body.auto_sync,
        sync_interval=body.sync_interval,
    )
    return {"status": "success", "data": store.to_public_dict()}


@router.post("/stores/{store_id}/webhooks")
async def register_webhooks(store_id: int, company_id: int = Depends(get_company_id)):
    """(Re)register webhooks; topics already registered are kept"""
    store_service.get_store(store_id, company_id=company_id)
    results = await store_service.register_webhooks(store_id)
    return {"status": "success", "data": results}


# ============================================================================
# Order sync
# ============================================================================

@router.post("/stores/{store_id}/sync/orders", status_code=202)
async def trigger_order_sync(
    store_id: int,
    background_tasks: BackgroundTasks,
    hours_back: Optional[int] = Query(None, ge=1, le=24 * 365, description="Only orders from the last N hours"),
    company_id: int = Depends(get_company_id)
):
    """
    Start an order sync in the background

    Returns the sync log ID to poll with GET /stores/{id}/sync/logs/{log_id}.
    """
    store = store_service.get_store(store_id, company_id=company_id)
    if not store.is_active:
        raise AppError("WooCommerce store is not active", "WOOCOMMERCE_STORE_INACTIVE", 400)

    sync_log = sync_log_repo.create(store_id, 'ORDERS')
    background_tasks.add_task(run_order_sync, store_id, sync_log.id, hours_back)

    return {
        "status": "success",
        "message": "Order sync started",
        "sync_log_id": sync_log.id
    }


@router.post("/stores/{store_id}/sync/orders/{woo_order_id}")
async def sync_single_order(store_id: int, woo_order_id: int, company_id: int = Depends(get_company_id)):
    order = await order_sync_service.sync_single_order_by_id(store_id, woo_order_id, company_id=company_id)
    return {"status": "success", "data": order.to_dict()}


@router.get("/stores/{store_id}/sync/logs")
async def list_sync_logs(
    store_id: int,
    limit: int = Query(20, ge=1, le=100),
    company_id: int = Depends(get_company_id)
):
    store_service.get_store(store_id, company_id=company_id)
    logs = sync_log_repo.find_recent(store_id, limit=limit)
    return {"status": "success", "data": [log.model_dump(mode="json") for log in logs]}


@router.get("/stores/{store_id}/sync/logs/{log_id}")
async def get_sync_log(store_id: int, log_id: int, company_id: int = Depends(get_company_id)):
    store_service.get_store(store_id, company_id=company_id)
    sync_log = sync_log_repo.find_by_id(log_id, store_id=store_id)
    if not sync_log:
        raise NotFoundError("Sync log not found", "SYNC_LOG_NOT_FOUND")
    return {"status": "success", "data": sync_log.model_dump(mode="json")}


# ============================================================================
# Product mappings
# ============================================================================

@router.get("/mappings")
async def list_mappings(
    store_id: Optional[int] = Query(None),
    mapping_type: Optional[str] = Query(None, description="AUTO or MANUAL"),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Search WooCommerce SKU, internal SKU or title"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    company_id: int = Depends(get_company_id)
):
    result = mapping_service.get_mappings(
        company_id,
        store_id=store_id,
        mapping_type=mapping_type,
        is_active=is_active,
        search=search,
        page=page,
        limit=limit,
    )
    return {
        "status": "success",
        "total": result['total'],
        "page": result['page'],
        "pages": result['pages'],
        "data": [m.model_dump(mode="json") for m in result['mappings']]
    }


@router.post("/stores/{store_id}/mappings", status_code=201)
async def create_mapping(store_id: int, body: ProductMappingCreate, company_id: int = Depends(get_company_id)):
    mapping = mapping_service.create_manual_mapping(store_id, company_id, body)
    return {"status": "success", "data": mapping.model_dump(mode="json")}


@router.delete("/mappings/{mapping_id}")
async def delete_mapping(mapping_id: int, company_id: int = Depends(get_company_id)):
    mapping_service.delete_mapping(mapping_id, company_id)
    return {"status": "success", "message": "Mapping deleted"}


@router.patch("/mappings/{mapping_id}/status")
async def toggle_mapping(mapping_id: int, body: MappingStatusRequest, company_id: int = Depends(get_company_id)):
    mapping = mapping_service.toggle_mapping_status(mapping_id, company_id, body.is_active)
    return {"status": "success", "data": mapping.model_dump(mode="json")}


@router.post("/stores/{store_id}/mappings/auto-map")
async def auto_map(store_id: int, company_id: int = Depends(get_company_id)):
    result = await mapping_service.auto_map_products(store_id, company_id=company_id)
    return {"status": "success", "data": result}


@router.post("/stores/{store_id}/mappings/import")
async def import_mappings(
    store_id: int,
    file: UploadFile = File(..., description="CSV with woocommerce_product_id, woocommerce_sku, internal_sku"),
    company_id: int = Depends(get_company_id)
):
    contents = await file.read()
    try:
        csv_data = contents.decode('utf-8-sig')
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")

    result = mapping_service.import_mappings_from_csv(store_id, company_id, csv_data)
    return {"status": "success", "data": result}


@router.get("/stores/{store_id}/mappings/export")
async def export_mappings(store_id: int, company_id: int = Depends(get_company_id)):
    store_service.get_store(store_id, company_id=company_id)
    csv_text = mapping_service.export_mappings_to_csv(store_id, company_id)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="woocommerce-mappings-{store_id}.csv"'}
    )


@router.get("/stores/{store_id}/mappings/stats")
async def mapping_stats(store_id: int, company_id: int = Depends(get_company_id)):
    return {"status": "success", "data": mapping_service.get_mapping_stats(store_id, company_id=company_id)}


# ============================================================================
# Fulfillment
# ============================================================================

@router.post("/orders/{order_id}/status")
async def push_order_status(order_id: int, body: OrderStatusRequest, company_id: int = Depends(get_company_id)):
    """Push a status (and optional tracking) to the WooCommerce order"""
    response = await fulfillment_service.update_order_status(
        order_id, body.status, body.tracking, company_id=company_id
    )
    if response is None:
        return {"status": "success", "message": "Order is not a WooCommerce order, nothing pushed"}
    return {"status": "success", "data": {"woocommerce_order_id": response.get('id'), "status": response.get('status')}}


@router.post("/orders/{order_id}/tracking-note")
async def add_tracking_note(order_id: int, body: TrackingInfo, company_id: int = Depends(get_company_id)):
    if not fulfillment_service.order_repo.find_by_id(order_id, company_id=company_id):
        raise NotFoundError("Order not found", "ORDER_NOT_FOUND")

    note = await fulfillment_service.add_tracking_note(order_id, body)
    return {"status": "success", "added": note is not None}


@router.post("/stores/{store_id}/fulfillment/sync-pending")
async def sync_pending_updates(store_id: int, company_id: int = Depends(get_company_id)):
    synced = await fulfillment_service.sync_pending_updates(store_id, company_id=company_id)
    return {"status": "success", "synced": synced}


@router.post("/shipments/{shipment_id}/status", status_code=202)
async def shipment_status_changed(
    shipment_id: int,
    body: ShipmentStatusRequest,
    background_tasks: BackgroundTasks,
    company_id: int = Depends(get_company_id)
):
    """Hook for courier integrations: reflect a shipment status on the store"""
    shipment = fulfillment_service.shipment_repo.find_by_id(shipment_id)
    if not shipment or not fulfillment_service.order_repo.find_by_id(shipment.order_id, company_id=company_id):
        raise NotFoundError("Shipment not found", "SHIPMENT_NOT_FOUND")

    background_tasks.add_task(fulfillment_service.handle_shipment_status_change, shipment_id, body.status)
    return {"status": "success", "message": "Shipment status queued for WooCommerce"}
