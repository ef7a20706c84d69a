import logging
from fastapi import APIRouter, Depends, HTTPException, status
from cafepos.api.deps import get_engine
from cafepos.schemas.response import SuccessResponse
from cafepos.services.engine import CafeEngine
from cafepos.services.migration import MigrationImporter

router = APIRouter()
log = logging.getLogger(__name__)


def _importer(engine: CafeEngine) -> MigrationImporter:
    if engine.migration is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Migration needs the embedded database; the engine is running on fallback storage.",
        )
    return engine.migration


@router.get("/status", response_model=SuccessResponse)
async def migration_status(engine: CafeEngine = Depends(get_engine)):
    importer = _importer(engine)
    presence = await importer.check_data_exists()
    return SuccessResponse(data={
        "completed": await importer.is_completed(),
        "data_exists": presence.model_dump(),
    })


@router.post("/run", response_model=SuccessResponse)
async def run_migration(engine: CafeEngine = Depends(get_engine)):
    """Imports the fallback store into the database; safe to repeat."""
    result = await _importer(engine).migrate_all()
    if not result.success:
        log.warning(f"Migration run left {len(result.errors)} error(s).")
    return SuccessResponse(success=result.success, data=result.model_dump())
