#!/usr/bin/env python3
"""
Sync WooCommerce Orders - Import orders from connected WooCommerce stores

Author: TM3
Date: 2026-02-11

Usage:
    python3 backend/scripts/sync/sync_woocommerce_orders.py --store-id 3
    python3 backend/scripts/sync/sync_woocommerce_orders.py --store-id 3 --hours-back 72
    python3 backend/scripts/sync/sync_woocommerce_orders.py --all
"""
import sys
import asyncio
import argparse
from pathlib import Path
from dotenv import load_dotenv

backend_dir = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(backend_dir))
load_dotenv(backend_dir / '.env')

from shipcrowd.services.woocommerce_order_sync_service import WooCommerceOrderSyncService


async def sync_store(service: WooCommerceOrderSyncService, store_id: int, hours_back):
    print(f"\n🔄 Syncing WooCommerce store {store_id}...")

    if hours_back:
        result = await service.sync_recent_orders(store_id, hours_back=hours_back)
    else:
        result = await service.sync_orders(store_id)

    print(f"  ✅ {result.items_synced} synced "
          f"({result.orders_created} created, {result.orders_updated} updated)")
    print(f"  ⏭️  {result.items_skipped} skipped")
    if result.items_failed:
        print(f"  ❌ {result.items_failed} failed")
        for error in result.errors[:10]:
            print(f"     - order {error['order_id']}: {error['error']}")

    print(f"  📊 Status: {result.status} in {result.duration_seconds:.1f}s (log {result.sync_log_id})")
    return result.success


async def main(args) -> bool:
    service = WooCommerceOrderSyncService()

    print("\n" + "="*60)
    print("🛒  SYNCING WOOCOMMERCE ORDERS")
    print("="*60)

    if args.all:
        summaries = await service.sync_all_active_stores(hours_back=args.hours_back)
        if not summaries:
            print("\nNo stores with auto sync enabled")
            return True

        for summary in summaries:
            icon = "✅" if summary['success'] else "❌"
            detail = summary.get('error') or f"{summary['items_synced']} synced, {summary['items_failed']} failed"
            print(f"  {icon} store {summary['store_id']:5} | {summary['status']:11} | {detail}")
        return all(s['success'] for s in summaries)

    try:
        return await sync_store(service, args.store_id, args.hours_back)
    except Exception as e:
        print(f"\n❌ Sync failed: {e}")
        return False


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sync orders from WooCommerce stores")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--store-id", type=int, help="WooCommerce store id")
    target.add_argument("--all", action="store_true", help="All active stores with auto sync enabled")
    parser.add_argument("--hours-back", type=int, default=None,
                        help="Only orders modified in the last N hours (default: full sync for one store)")

    ok = asyncio.run(main(parser.parse_args()))
    sys.exit(0 if ok else 1)
