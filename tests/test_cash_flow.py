from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cafepos.core.exceptions import ValidationError
from cafepos.models.cash_flow import TransactionCategory, TransactionType
from cafepos.schemas.cash_flow import SummaryPeriod
from cafepos.services.cash_flow_ledger import period_start


class TestBalance:

    @pytest.mark.asyncio
    async def test_balance_is_inflow_minus_outflow(self, engine):
        ledger = engine.cash_flow
        assert await ledger.balance() == 0

        await ledger.record_inflow("200.00", "Opening float")
        await ledger.record_expense("35.50", "Ice")
        await ledger.record_refund("10", "Wrong order")

        transactions = await ledger.list_transactions()
        inflow = sum(t.amount for t in transactions if t.type == TransactionType.INFLOW)
        outflow = sum(t.amount for t in transactions if t.type == TransactionType.OUTFLOW)
        assert await ledger.balance() == inflow - outflow == Decimal("154.50")

    @pytest.mark.asyncio
    async def test_set_balance_appends_one_adjustment(self, engine):
        ledger = engine.cash_flow

        adjustment = await ledger.set_balance(500, "Morning count")
        assert adjustment.type == TransactionType.INFLOW
        assert adjustment.category == TransactionCategory.CASH_ADJUSTMENT
        assert adjustment.amount == 500
        assert await ledger.balance() == 500

        # Already at target: nothing appended
        assert await ledger.set_balance(500) is None
        assert len(await ledger.list_transactions()) == 1

    @pytest.mark.asyncio
    async def test_set_balance_downwards(self, engine):
        ledger = engine.cash_flow
        await ledger.record_inflow(300, "Sales")

        adjustment = await ledger.set_balance("120.25")
        assert adjustment.type == TransactionType.OUTFLOW
        assert adjustment.amount == Decimal("179.75")
        assert await ledger.balance() == Decimal("120.25")

    @pytest.mark.asyncio
    async def test_expense_category_depends_on_items(self, engine):
        supplies = await engine.cash_flow.record_expense(80, "Restock", items_purchased="2 bags of ice")
        bill = await engine.cash_flow.record_expense(40, "Electricity")
        assert supplies.category == TransactionCategory.STOCK_PURCHASE
        assert bill.category == TransactionCategory.EXPENSE

    @pytest.mark.asyncio
    async def test_non_positive_amounts_rejected(self, engine):
        with pytest.raises(ValidationError):
            await engine.cash_flow.record_inflow(0, "Nothing")
        with pytest.raises(ValidationError):
            await engine.cash_flow.record_expense("-5", "Negative")


class TestSummary:

    @pytest.mark.asyncio
    async def test_today_summary(self, engine):
        ledger = engine.cash_flow
        await ledger.record_inflow(100, "Float")
        await ledger.record_inflow(50, "Tip jar", category=TransactionCategory.CASH_DEPOSIT)
        await ledger.record_expense(30, "Cups", items_purchased="cups")

        summary = await ledger.summary(SummaryPeriod.TODAY)

        assert summary.total_inflow == 150
        assert summary.total_outflow == 30
        assert summary.net_flow == 120
        assert summary.current_balance == 120
        assert summary.transaction_count == 3
        assert summary.inflow_by_category == {"CASH_DEPOSIT": Decimal("150.00")}
        assert summary.outflow_by_category == {"STOCK_PURCHASE": Decimal("30.00")}
        assert len(summary.recent_transactions) == 3

    @pytest.mark.asyncio
    async def test_recent_transactions_are_limited(self, engine):
        for i in range(12):
            await engine.cash_flow.record_inflow(i + 1, f"Deposit {i}")
        summary = await engine.cash_flow.summary(SummaryPeriod.MONTH)
        assert summary.transaction_count == 12
        assert len(summary.recent_transactions) == 10

    def test_period_windows(self):
        now = datetime(2024, 5, 17, 15, 30, tzinfo=timezone.utc)
        assert period_start(SummaryPeriod.TODAY, now) == datetime(2024, 5, 17, tzinfo=timezone.utc)
        assert period_start(SummaryPeriod.WEEK, now) == datetime(2024, 5, 11, tzinfo=timezone.utc)
        assert period_start(SummaryPeriod.MONTH, now) == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_naive_now_is_treated_as_utc(self):
        assert period_start(SummaryPeriod.TODAY, datetime(2024, 5, 17, 1, 0)) == datetime(2024, 5, 17, tzinfo=timezone.utc)
