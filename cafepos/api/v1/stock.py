import logging
from fastapi import APIRouter, Depends, HTTPException, status
from cafepos.api.deps import get_engine
from cafepos.schemas.catalog import CatalogType
from cafepos.schemas.response import SuccessResponse
from cafepos.schemas.stock import ItemType, StockQuantityUpdate, StockRecord, StockResponse
from cafepos.services.engine import CafeEngine
from uuid import UUID

router = APIRouter()
log = logging.getLogger(__name__)

ITEM_CATALOG = {
    ItemType.ADDON: CatalogType.ADDON,
    ItemType.INGREDIENT: CatalogType.INGREDIENT,
    ItemType.MATERIAL: CatalogType.MATERIAL,
}


def _response(record: StockRecord) -> StockResponse:
    return StockResponse(
        item_type=record.item_type,
        item_id=record.item_id,
        quantity=record.quantity,
        updated_at=str(record.updated_at),
    )


@router.get("/", response_model=SuccessResponse)
async def list_stock(engine: CafeEngine = Depends(get_engine)):
    """Current on-hand quantity of every stocked item."""
    records = await engine.stock.list_stock()
    return SuccessResponse(data=[_response(r).model_dump(mode="json") for r in records])


@router.put("/{item_type}/{item_id}", response_model=SuccessResponse)
async def set_stock_quantity(
    item_type: ItemType,
    item_id: UUID,
    payload: StockQuantityUpdate,
    engine: CafeEngine = Depends(get_engine),
):
    """Administrative override of an item's stock quantity."""
    if await engine.catalog.get(ITEM_CATALOG[item_type], item_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{item_type.value} {item_id} not found.")
    record = await engine.stock.set_quantity(item_type, item_id, payload.quantity)
    return SuccessResponse(data=_response(record).model_dump(mode="json"))
