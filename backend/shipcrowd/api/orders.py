"""
Orders API Endpoints
Read access to the caller's company orders (imported from sales channels)

Author: TM3
Date: 2026-02-11
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from shipcrowd.core.auth import get_company_id
from shipcrowd.core.exceptions import NotFoundError
from shipcrowd.repositories.order_repository import OrderRepository

router = APIRouter()


@router.get("/")
async def get_orders(
    source: Optional[str] = Query(None, description="Filter by source (woocommerce, ...)"),
    status: Optional[str] = Query(None, description="Filter by order status"),
    store_id: Optional[int] = Query(None, description="Filter by WooCommerce store"),
    search: Optional[str] = Query(None, description="Search by order number, customer name or email"),
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    company_id: int = Depends(get_company_id)
):
    """
    Get the company's orders with optional filters
    """
    try:
        repo = OrderRepository()
        orders, total = repo.find_all(
            company_id,
            source=source,
            status=status,
            store_id=store_id,
            search=search,
            limit=limit,
            offset=offset
        )

        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(orders),
            "data": [order.to_dict() for order in orders]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.get("/{order_id}")
async def get_order(order_id: int, company_id: int = Depends(get_company_id)):
    order = OrderRepository().find_by_id(order_id, company_id=company_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found", "ORDER_NOT_FOUND")

    return {"status": "success", "data": order.to_dict()}
