from pathlib import Path
from tortoise import Tortoise
from cafepos.core.config import DB_URL
import logging
from logging import INFO

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)
log = logging.getLogger(__name__)

# Define all models modules for the ORM
MODELS_MODULES = [
    "cafepos.models.catalog",
    "cafepos.models.stock",
    "cafepos.models.order",
    "cafepos.models.cash_flow",
    "cafepos.models.setting",
]


def _ensure_sqlite_dir(db_url: str) -> None:
    """Creates the parent directory of a file-based SQLite database."""
    if not db_url.startswith("sqlite://"):
        return
    path = db_url[len("sqlite://"):]
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


async def init_db(db_url: str = DB_URL):
    """Initializes the Tortoise ORM connection and generates schemas."""
    try:
        _ensure_sqlite_dir(db_url)
        await Tortoise.init(
            db_url=db_url,
            modules={"models": MODELS_MODULES},
            use_tz=True,
            timezone="UTC",
        )
        # Generate the database schema (create tables)
        await Tortoise.generate_schemas(safe=True)
        log.info("Database connection established and schemas generated.")
    except Exception as e:
        log.error(f"Could not open embedded database at {db_url}. Error: {e}")
        # Re-raise so the caller can decide whether to fall back
        raise e

async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    log.info("Database connections closed.")
