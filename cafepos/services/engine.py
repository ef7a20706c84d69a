import logging
from typing import Optional

from cafepos.core.config import LOW_STOCK_THRESHOLD, OVERSELL_POLICY, RECENT_TRANSACTIONS_LIMIT
from cafepos.events.stock_events import StockEventDispatcher, log_stock_event
from cafepos.schemas.common import Number
from cafepos.schemas.stock import OversellPolicy
from cafepos.services.cash_flow_ledger import CashFlowLedger
from cafepos.services.catalog_store import CatalogStore
from cafepos.services.migration import MigrationImporter
from cafepos.services.order_pipeline import OrderCommitPipeline
from cafepos.services.stock_ledger import StockLedger
from cafepos.storage.base import StorageBackend

log = logging.getLogger(__name__)


class CafeEngine:
    """
    All engine components wired to one storage backend. Built once at
    process start and shared by every caller.
    """

    def __init__(
        self,
        backend: StorageBackend,
        migration_source: Optional[StorageBackend] = None,
        low_stock_threshold: Number = LOW_STOCK_THRESHOLD,
        oversell_policy: OversellPolicy = OversellPolicy(OVERSELL_POLICY),
        recent_limit: int = RECENT_TRANSACTIONS_LIMIT,
        dispatcher: Optional[StockEventDispatcher] = None,
    ):
        self.backend = backend
        self.events = dispatcher or StockEventDispatcher([log_stock_event])
        self.stock = StockLedger(backend, low_stock_threshold, oversell_policy, self.events)
        self.cash_flow = CashFlowLedger(backend, recent_limit)
        self.catalog = CatalogStore(backend, self.stock)
        self.orders = OrderCommitPipeline(backend, self.catalog, self.stock, self.cash_flow)
        # Importing only makes sense into the database, from the fallback store
        self.migration: Optional[MigrationImporter] = None
        if migration_source is not None and backend.transactional:
            self.migration = MigrationImporter(migration_source, backend, self.catalog)

    async def close(self) -> None:
        await self.backend.close()
        log.info(f"Engine on {self.backend.name} storage closed.")
