import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from cafepos.core.config import RECENT_TRANSACTIONS_LIMIT
from cafepos.core.exceptions import ValidationError
from cafepos.models.cash_flow import TransactionCategory, TransactionType
from cafepos.schemas.cash_flow import CashFlowSummary, SummaryPeriod, TransactionInput, TransactionRecord
from cafepos.schemas.common import Number, money, utc_now
from cafepos.storage.base import StorageBackend

log = logging.getLogger(__name__)

TABLE = "cash_flow_transactions"
ZERO = Decimal("0.00")


def period_start(period: SummaryPeriod, now: datetime) -> datetime:
    """Start of the reporting window, in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    midnight = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == SummaryPeriod.TODAY:
        return midnight
    if period == SummaryPeriod.WEEK:
        return midnight - timedelta(days=6)
    return midnight.replace(day=1)


class CashFlowLedger:
    """
    Append-only cash drawer ledger.

    Transactions are never edited or removed. The drawer balance is not
    stored anywhere: it is recomputed from the full history on every call,
    and a physical recount is reconciled by appending an adjustment.
    """

    def __init__(self, backend: StorageBackend, recent_limit: int = RECENT_TRANSACTIONS_LIMIT):
        self.backend = backend
        self.recent_limit = recent_limit

    async def append(self, transaction: TransactionInput) -> TransactionRecord:
        data = transaction.model_dump()
        data["amount"] = money(transaction.amount)
        data["created_at"] = utc_now()
        async with self.backend.unit_of_work():
            row = await self.backend.create_entity(TABLE, data)
        record = TransactionRecord.model_validate(row)
        log.info(f"Cash flow {record.type.value} {record.category.value} of {record.amount} recorded ({record.id}).")
        return record

    async def balance(self) -> Decimal:
        """Sum of inflows minus sum of outflows over the whole history."""
        totals = await self.backend.sum_by(TABLE, "amount", "type")
        inflow = totals.get(TransactionType.INFLOW.value, ZERO)
        outflow = totals.get(TransactionType.OUTFLOW.value, ZERO)
        return money(inflow - outflow)

    async def list_transactions(self, limit: Optional[int] = None) -> List[TransactionRecord]:
        rows = await self.backend.read_entities(TABLE, order_by=["-created_at"])
        records = [TransactionRecord.model_validate(row) for row in rows]
        return records[:limit] if limit is not None else records

    async def summary(self, period: SummaryPeriod = SummaryPeriod.TODAY, now: Optional[datetime] = None) -> CashFlowSummary:
        since = period_start(period, now or utc_now())
        records = [t for t in await self.list_transactions() if t.created_at >= since]

        inflow_by_category = {}
        outflow_by_category = {}
        for t in records:
            bucket = inflow_by_category if t.type == TransactionType.INFLOW else outflow_by_category
            bucket[t.category.value] = money(bucket.get(t.category.value, ZERO) + t.amount)

        total_inflow = money(sum(inflow_by_category.values(), ZERO))
        total_outflow = money(sum(outflow_by_category.values(), ZERO))
        return CashFlowSummary(
            period=period,
            since=since,
            total_inflow=total_inflow,
            total_outflow=total_outflow,
            net_flow=money(total_inflow - total_outflow),
            current_balance=await self.balance(),
            transaction_count=len(records),
            inflow_by_category=inflow_by_category,
            outflow_by_category=outflow_by_category,
            recent_transactions=records[:self.recent_limit],
        )

    async def set_balance(self, target: Number, reason: str = "Drawer count") -> Optional[TransactionRecord]:
        """
        Reconciles the drawer to a counted amount.

        Appends a single CASH_ADJUSTMENT for the difference, or nothing when
        the derived balance already matches.
        """
        target = money(target)
        async with self.backend.unit_of_work():
            delta = target - await self.balance()
            if delta == 0:
                log.info(f"Drawer already at {target}; no adjustment needed.")
                return None
            direction = TransactionType.INFLOW if delta > 0 else TransactionType.OUTFLOW
            return await self.append(TransactionInput(
                type=direction,
                category=TransactionCategory.CASH_ADJUSTMENT,
                amount=abs(delta),
                description=reason,
            ))

    async def record_inflow(
        self,
        amount: Number,
        description: str,
        category: TransactionCategory = TransactionCategory.CASH_DEPOSIT,
        order_id: Optional[UUID] = None,
    ) -> TransactionRecord:
        amount = money(amount)
        if amount <= 0:
            raise ValidationError("Inflow amount must be positive.")
        return await self.append(TransactionInput(
            type=TransactionType.INFLOW, category=category,
            amount=amount, description=description, order_id=order_id,
        ))

    async def record_expense(self, amount: Number, description: str, items_purchased: Optional[str] = None) -> TransactionRecord:
        amount = money(amount)
        if amount <= 0:
            raise ValidationError("Expense amount must be positive.")
        category = TransactionCategory.STOCK_PURCHASE if items_purchased else TransactionCategory.EXPENSE
        return await self.append(TransactionInput(
            type=TransactionType.OUTFLOW, category=category,
            amount=amount, description=description, items_purchased=items_purchased,
        ))

    async def record_refund(self, amount: Number, description: str, order_id: Optional[UUID] = None) -> TransactionRecord:
        amount = money(amount)
        if amount <= 0:
            raise ValidationError("Refund amount must be positive.")
        return await self.append(TransactionInput(
            type=TransactionType.OUTFLOW, category=TransactionCategory.REFUND,
            amount=amount, description=description, order_id=order_id,
        ))
