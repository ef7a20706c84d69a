import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from cafepos.core.config import LOW_STOCK_THRESHOLD, OVERSELL_POLICY
from cafepos.core.exceptions import InsufficientStockError, ValidationError
from cafepos.events.stock_events import StockEventDispatcher
from cafepos.schemas.common import Number, quantity as to_quantity, utc_now
from cafepos.schemas.stock import (
    STOCK_COLUMNS,
    ConsumptionEntry,
    DeductionReport,
    ItemType,
    LowStockEvent,
    OversellPolicy,
    StockMovement,
    StockRecord,
    StockShortfallEvent,
)
from cafepos.storage.base import StorageBackend

log = logging.getLogger(__name__)

ZERO = Decimal("0")


class StockLedger:
    """Per-item stock quantities. A quantity never goes below zero."""

    def __init__(
        self,
        backend: StorageBackend,
        low_stock_threshold: Number = LOW_STOCK_THRESHOLD,
        policy: OversellPolicy = OversellPolicy(OVERSELL_POLICY),
        dispatcher: Optional[StockEventDispatcher] = None,
    ):
        self.backend = backend
        self.low_stock_threshold = Decimal(str(low_stock_threshold))
        self.policy = policy
        self.dispatcher = dispatcher or StockEventDispatcher()

    async def _find(self, item_type: ItemType, item_id: UUID) -> Optional[StockRecord]:
        rows = await self.backend.read_entities("stock", **{STOCK_COLUMNS[item_type]: item_id})
        return StockRecord.model_validate(rows[0]) if rows else None

    async def _write(self, item_type: ItemType, item_id: UUID, record: Optional[StockRecord], new_quantity: Decimal) -> StockRecord:
        now = utc_now()
        if record is not None:
            row = await self.backend.update_entity("stock", record.id, {"quantity": new_quantity, "updated_at": now})
        else:
            row = await self.backend.create_entity(
                "stock",
                {STOCK_COLUMNS[item_type]: item_id, "quantity": new_quantity, "updated_at": now},
            )
        return StockRecord.model_validate(row)

    async def quantity(self, item_type: ItemType, item_id: UUID) -> Decimal:
        """Current on-hand quantity; items without a stock record have none."""
        record = await self._find(item_type, item_id)
        return record.quantity if record else ZERO

    async def get(self, item_type: ItemType, item_id: UUID) -> Optional[StockRecord]:
        return await self._find(item_type, item_id)

    async def list_stock(self) -> List[StockRecord]:
        rows = await self.backend.read_entities("stock")
        return [StockRecord.model_validate(row) for row in rows]

    async def deduct(self, entries: Iterable[ConsumptionEntry]) -> DeductionReport:
        """
        Deducts consumption from stock.

        Entries are merged per (item_type, item_id) first, since one cart can
        reach the same ingredient through several lines. Each item is then set
        to max(0, current - used). Under ALLOW_OVERSELL an overdrawn item is
        clamped at zero and reported as a shortfall event; under REJECT the
        whole deduction is refused before anything is written.
        """
        grouped: Dict[Tuple[ItemType, UUID], Decimal] = {}
        for entry in entries:
            key = (entry.item_type, entry.item_id)
            grouped[key] = grouped.get(key, ZERO) + entry.quantity

        report = DeductionReport()
        async with self.backend.unit_of_work():
            current = {key: await self._find(*key) for key in grouped}

            if self.policy == OversellPolicy.REJECT:
                for (item_type, item_id), used in grouped.items():
                    available = current[(item_type, item_id)].quantity if current[(item_type, item_id)] else ZERO
                    if used > available:
                        raise InsufficientStockError(item_type.value, str(item_id), available, used)

            for (item_type, item_id), used in grouped.items():
                if used <= ZERO:
                    continue
                record = current[(item_type, item_id)]
                before = record.quantity if record else ZERO
                after = to_quantity(max(ZERO, before - used))
                shortfall = max(ZERO, used - before)
                await self._write(item_type, item_id, record, after)

                report.movements.append(StockMovement(
                    item_type=item_type, item_id=item_id,
                    before=before, requested=used, after=after, shortfall=shortfall,
                ))
                if shortfall > ZERO:
                    report.events.append(StockShortfallEvent(
                        item_type=item_type, item_id=item_id,
                        requested=used, available=before, shortfall=shortfall,
                    ))
                if before > self.low_stock_threshold >= after:
                    report.events.append(LowStockEvent(
                        item_type=item_type, item_id=item_id,
                        quantity=after, threshold=self.low_stock_threshold,
                    ))

        log.info(f"Stock deducted for {len(report.movements)} item(s), {len(report.events)} event(s).")
        return report

    async def publish(self, report: DeductionReport) -> None:
        """Hands the report's events to subscribers; call after the unit of work."""
        await self.dispatcher.dispatch_all(report.events)

    async def set_quantity(self, item_type: ItemType, item_id: UUID, new_quantity: Number) -> StockRecord:
        """Administrative override; creates the stock record when missing."""
        value = to_quantity(new_quantity)
        if value < ZERO:
            raise ValidationError(f"Stock quantity cannot be negative: {value}")
        async with self.backend.unit_of_work():
            record = await self._find(item_type, item_id)
            updated = await self._write(item_type, item_id, record, value)
        log.info(f"Stock for {item_type.value} {item_id} set to {value}.")
        return updated

    async def remove(self, item_type: ItemType, item_id: UUID) -> int:
        return await self.backend.delete_where("stock", **{STOCK_COLUMNS[item_type]: item_id})
