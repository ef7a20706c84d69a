from types import SimpleNamespace

import pytest
import pytest_asyncio

from cafepos.core.db import close_db, init_db
from cafepos.schemas.catalog import CatalogType
from cafepos.services.engine import CafeEngine
from cafepos.storage.fallback import FallbackBackend
from cafepos.storage.kv_store import MemoryStore
from cafepos.storage.transactional import TransactionalBackend

MEMORY_DB = "sqlite://:memory:"


@pytest_asyncio.fixture
async def transactional_backend():
    await init_db(MEMORY_DB)
    yield TransactionalBackend()
    await close_db()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def fallback_backend(memory_store):
    return FallbackBackend(memory_store)


@pytest_asyncio.fixture(params=["transactional", "fallback"])
async def backend(request):
    """Runs the test once per storage backend."""
    if request.param == "transactional":
        await init_db(MEMORY_DB)
        yield TransactionalBackend()
        await close_db()
    else:
        yield FallbackBackend(MemoryStore())


@pytest.fixture
def engine(backend):
    return CafeEngine(backend)


async def build_menu(engine: CafeEngine) -> SimpleNamespace:
    """Iced Coffee (Large 120: one cup, 10 g beans) plus an Extra Shot add-on."""
    cup = await engine.catalog.create(CatalogType.MATERIAL, {
        "name": "12oz Cup", "price_per_piece": "5.00", "stock_quantity": 300,
    })
    beans = await engine.catalog.create(CatalogType.INGREDIENT, {
        "name": "Coffee Beans", "measurement_unit": "g", "price_per_purchase": "800.00",
        "units_per_purchase": 1000, "stock_quantity": 1000,
    })
    shot = await engine.catalog.create(CatalogType.ADDON, {
        "name": "Extra Shot", "price": "15.00", "stock_quantity": 100,
    })
    vanilla = await engine.catalog.create(CatalogType.FLAVOR, {"name": "Creamy Vanilla"})
    product = await engine.catalog.create(CatalogType.PRODUCT, {
        "name": "Iced Coffee",
        "flavors": ["Creamy Vanilla"],
        "sizes": [
            {
                "name": "Large", "price": "120.00",
                "materials": [{"material_id": str(cup.id), "quantity": 1}],
                "ingredients": [{"ingredient_id": str(beans.id), "quantity": 10}],
            },
            {
                "name": "Medium", "price": "95.00",
                "materials": [{"material_id": str(cup.id), "quantity": 1}],
                "ingredients": [{"ingredient_id": str(beans.id), "quantity": 8}],
            },
        ],
    })
    large = next(s for s in product.sizes if s.name == "Large")
    return SimpleNamespace(cup=cup, beans=beans, shot=shot, vanilla=vanilla, product=product, large=large)


@pytest_asyncio.fixture
async def menu(engine):
    return await build_menu(engine)
