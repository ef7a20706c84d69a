import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from cafepos.core.bootstrap import build_engine
from cafepos.api.v1.catalog import router as catalog_router
from cafepos.api.v1.orders import router as orders_router
from cafepos.api.v1.stock import router as stock_router
from cafepos.api.v1.cash_flow import router as cash_flow_router
from cafepos.api.v1.migration import router as migration_router
from cafepos.core.config import LOG_LEVEL, PROJECT_NAME, VERSION
from cafepos.core.exception_handlers import setup_exception_handlers

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    print(f"Starting {PROJECT_NAME} v{VERSION}...")
    # Tests may install their own engine before startup
    if getattr(app.state, "engine", None) is None:
        app.state.engine = await build_engine()
    print(f"Storage backend: {app.state.engine.backend.name}")
    yield
    await app.state.engine.close()
    app.state.engine = None
    print(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(catalog_router, prefix="/api/v1/catalog", tags=["Catalog"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(stock_router, prefix="/api/v1/stock", tags=["Stock"])
app.include_router(cash_flow_router, prefix="/api/v1/cash-flow", tags=["Cash Flow"])
app.include_router(migration_router, prefix="/api/v1/migration", tags=["Migration"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    engine = getattr(app.state, "engine", None)
    return {
        "status": "ok",
        "app_name": PROJECT_NAME,
        "storage": engine.backend.name if engine else None,
    }
