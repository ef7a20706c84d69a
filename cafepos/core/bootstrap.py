import logging

from cafepos.core.config import DB_URL, FALLBACK_STORE_DIR, MIGRATE_ON_STARTUP, STORAGE_BACKEND
from cafepos.core.exceptions import StorageError
from cafepos.services.engine import CafeEngine
from cafepos.storage.fallback import FallbackBackend
from cafepos.storage.kv_store import JsonFileStore
from cafepos.storage.transactional import TransactionalBackend

log = logging.getLogger(__name__)


async def build_engine(
    storage: str = STORAGE_BACKEND,
    db_url: str = DB_URL,
    fallback_dir: str = FALLBACK_STORE_DIR,
    migrate: bool = MIGRATE_ON_STARTUP,
) -> CafeEngine:
    """
    Opens the configured storage and returns a ready engine.

    ``auto`` prefers the embedded database and falls back to the key-value
    store when it cannot be opened. With the database up, data left in the
    fallback store by earlier sessions is imported once.
    """
    fallback = FallbackBackend(JsonFileStore(fallback_dir))

    if storage == "fallback":
        log.info("Using fallback storage (forced by configuration).")
        return CafeEngine(fallback)
    if storage not in ("auto", "transactional"):
        raise StorageError(f"Unknown storage backend '{storage}'")

    try:
        backend = await TransactionalBackend.open(db_url)
    except Exception as e:
        if storage == "transactional":
            raise StorageError(f"Embedded database unavailable: {e}") from e
        log.warning(f"Embedded database unavailable ({e}); using fallback storage.")
        return CafeEngine(fallback)

    engine = CafeEngine(backend, migration_source=fallback)
    if migrate:
        result = await engine.migration.run_on_startup()
        if not result.success:
            log.error(f"Startup migration incomplete: {result.errors}")
    return engine
