import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from cafepos.api.deps import get_engine
from cafepos.core.exceptions import StorageError, ValidationError
from cafepos.schemas.response import SuccessResponse
from cafepos.schemas.order import Cart, OrderFilter, OrderStatusUpdate
from cafepos.services.engine import CafeEngine
from uuid import UUID

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(cart: Cart, engine: CafeEngine = Depends(get_engine)):
    """
    Commits a cart: stock is deducted, the order stored and the payment
    recorded together. Returns the committed order with its change.
    """
    try:
        order = await engine.orders.create_order(cart)
        log.info(f"Order {order.id} placed successfully.")
        return SuccessResponse(data=order.model_dump(mode="json"))
    except ValidationError as e:
        log.error(f"Order rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        log.error(f"Error placing order: {e}")
        raise HTTPException(status_code=500, detail="Order could not be processed.")


@router.get("/", response_model=SuccessResponse)
async def list_orders_endpoint(
    order_filter: OrderFilter = Query(OrderFilter.ALL, alias="filter"),
    engine: CafeEngine = Depends(get_engine),
):
    """Orders newest first."""
    orders = await engine.orders.list_orders(order_filter)
    return SuccessResponse(data=[o.model_dump(mode="json") for o in orders])


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID, engine: CafeEngine = Depends(get_engine)):
    """Fetches details for a specific order."""
    order = await engine.orders.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return SuccessResponse(data=order.model_dump(mode="json"))


@router.patch("/{order_id}/status", response_model=SuccessResponse)
async def update_status_endpoint(order_id: UUID, payload: OrderStatusUpdate, engine: CafeEngine = Depends(get_engine)):
    """
    Updates status (e.g. 'SERVED', 'CANCELLED'). Stock and payments are not touched.
    """
    try:
        order = await engine.orders.update_order_status(order_id, payload.order_status)
    except ValidationError as e:
        log.error(f"Value error updating order status: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return SuccessResponse(data=order.model_dump(mode="json"))
