"""
Sync API - Scheduled WooCommerce synchronization endpoints
Designed to be called by cron-job.org or similar services

Endpoints:
- GET  /api/v1/sync/status              - Order sync state per active store (public)
- POST /api/v1/sync/woocommerce/orders  - Recent-order sync for all stores (requires API key)

Security:
- POST endpoints require X-Sync-Key header with valid SYNC_API_KEY
- GET endpoints are public (read-only, no credentials or URLs)

Author: TM3
Date: 2026-02-11
"""
from fastapi import APIRouter, HTTPException, Query, BackgroundTasks, Header, Depends
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime
import hmac
import logging

from shipcrowd.core.config import settings
from shipcrowd.repositories.store_repository import StoreRepository
from shipcrowd.services.woocommerce_order_sync_service import WooCommerceOrderSyncService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sync", tags=["Sync"])

order_sync_service = WooCommerceOrderSyncService()
store_repo = StoreRepository()


# ============================================================================
# Security - API Key Verification
# ============================================================================

async def verify_sync_key(x_sync_key: str = Header(None, alias="X-Sync-Key")):
    """
    Verify the sync API key from X-Sync-Key header.

    If SYNC_API_KEY is not configured, allows all requests (local development).
    If configured, requires matching key.
    """
    if not settings.SYNC_API_KEY:
        logger.warning("SYNC_API_KEY not configured - sync endpoints are unprotected!")
        return

    if not x_sync_key:
        logger.warning("Sync request without X-Sync-Key header")
        raise HTTPException(
            status_code=401,
            detail="Missing X-Sync-Key header. Authentication required."
        )

    if not hmac.compare_digest(x_sync_key, settings.SYNC_API_KEY):
        logger.warning("Invalid sync key attempt")
        raise HTTPException(
            status_code=401,
            detail="Invalid API key"
        )


# ============================================================================
# Response Models
# ============================================================================

class StoreSyncState(BaseModel):
    store_id: int
    is_paused: bool
    auto_sync: bool
    sync_status: str
    last_sync_at: Optional[datetime]
    error_count: int


class SyncStatusResponse(BaseModel):
    active_stores: int
    stores: List[StoreSyncState]


class OrderSyncRunResponse(BaseModel):
    success: bool
    message: str
    stores: List[Dict[str, Any]]
    duration_seconds: float
    timestamp: datetime


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status():
    """Order sync state of every active WooCommerce store"""
    try:
        stores = store_repo.find_active()
        return SyncStatusResponse(
            active_stores=len(stores),
            stores=[
                StoreSyncState(
                    store_id=store.id,
                    is_paused=store.is_paused,
                    auto_sync=store.sync_config.order_sync.auto_sync,
                    sync_status=store.sync_config.order_sync.sync_status.value,
                    last_sync_at=store.sync_config.order_sync.last_sync_at,
                    error_count=store.sync_config.order_sync.error_count,
                )
                for store in stores
            ]
        )
    except Exception as e:
        logger.error(f"Error getting sync status: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/woocommerce/orders", response_model=OrderSyncRunResponse, dependencies=[Depends(verify_sync_key)])
async def sync_woocommerce_orders(
    background_tasks: BackgroundTasks,
    hours_back: Optional[int] = Query(default=None, ge=1, le=24 * 30, description="Hours to look back"),
    run_in_background: bool = Query(default=False, description="Run sync in background")
):
    """
    Sync recent orders of every active WooCommerce store

    Stores that are paused or have auto sync disabled are skipped.
    """
    start_time = datetime.now()

    if run_in_background:
        background_tasks.add_task(order_sync_service.sync_all_active_stores, hours_back)
        return OrderSyncRunResponse(
            success=True,
            message="Sync started in background",
            stores=[],
            duration_seconds=0,
            timestamp=start_time
        )

    try:
        logger.info(f"Starting scheduled WooCommerce order sync (hours_back={hours_back})")
        summaries = await order_sync_service.sync_all_active_stores(hours_back)

        failed = [s for s in summaries if not s['success']]
        return OrderSyncRunResponse(
            success=not failed,
            message=f"Synced {len(summaries) - len(failed)}/{len(summaries)} stores",
            stores=summaries,
            duration_seconds=round((datetime.now() - start_time).total_seconds(), 2),
            timestamp=start_time
        )
    except Exception as e:
        logger.error(f"Error syncing WooCommerce orders: {e}")
        raise HTTPException(status_code=500, detail=str(e))
