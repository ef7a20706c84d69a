import logging
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, status

from cafepos.api.deps import get_engine
from cafepos.schemas.catalog import CatalogType
from cafepos.schemas.response import SuccessResponse
from cafepos.services.engine import CafeEngine

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/flavors/defaults", response_model=SuccessResponse)
async def import_default_flavors(replace: bool = False, engine: CafeEngine = Depends(get_engine)):
    """Seeds the default flavor list; ``replace`` drops flavors outside it first."""
    result = await engine.catalog.import_default_flavor_set(replace=replace)
    return SuccessResponse(data=result.model_dump())


@router.get("/{entity_type}", response_model=SuccessResponse)
async def list_entities(entity_type: CatalogType, engine: CafeEngine = Depends(get_engine)):
    records = await engine.catalog.list(entity_type)
    return SuccessResponse(data=[r.model_dump(mode="json") for r in records])


@router.post("/{entity_type}", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_entity(entity_type: CatalogType, payload: Dict[str, Any] = Body(...), engine: CafeEngine = Depends(get_engine)):
    """
    Creates a catalog entry. When an entry with the same name (ignoring case)
    exists, that entry is returned instead.
    """
    record = await engine.catalog.create(entity_type, payload)
    return SuccessResponse(data=record.model_dump(mode="json"))


@router.get("/{entity_type}/{entity_id}", response_model=SuccessResponse)
async def get_entity(entity_type: CatalogType, entity_id: UUID, engine: CafeEngine = Depends(get_engine)):
    record = await engine.catalog.get(entity_type, entity_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity_type.value} entry not found")
    return SuccessResponse(data=record.model_dump(mode="json"))


@router.put("/{entity_type}/{entity_id}", response_model=SuccessResponse)
async def update_entity(
    entity_type: CatalogType,
    entity_id: UUID,
    payload: Dict[str, Any] = Body(...),
    engine: CafeEngine = Depends(get_engine),
):
    record = await engine.catalog.update(entity_type, entity_id, payload)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity_type.value} entry not found")
    return SuccessResponse(data=record.model_dump(mode="json"))


@router.delete("/{entity_type}/{entity_id}", response_model=SuccessResponse)
async def delete_entity(entity_type: CatalogType, entity_id: UUID, engine: CafeEngine = Depends(get_engine)):
    if not await engine.catalog.delete(entity_type, entity_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity_type.value} entry not found")
    log.info(f"Deleted {entity_type.value} entry {entity_id}.")
    return SuccessResponse(data={"id": str(entity_id), "deleted": True})
