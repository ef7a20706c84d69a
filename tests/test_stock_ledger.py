from decimal import Decimal
from uuid import uuid4

import pytest

from cafepos.core.exceptions import InsufficientStockError, ValidationError
from cafepos.events.stock_events import StockEventDispatcher
from cafepos.schemas.catalog import CatalogType
from cafepos.schemas.stock import ConsumptionEntry, ItemType, LowStockEvent, OversellPolicy, StockShortfallEvent
from cafepos.services.stock_ledger import StockLedger


async def _addon(engine, name="Pearls", stock=20):
    return await engine.catalog.create(CatalogType.ADDON, {"name": name, "price": "10.00", "stock_quantity": stock})


class TestDeduct:

    @pytest.mark.asyncio
    async def test_clamps_at_zero_and_reports_shortfall(self, engine):
        pearls = await _addon(engine, stock=20)

        report = await engine.stock.deduct([ConsumptionEntry(item_type=ItemType.ADDON, item_id=pearls.id, quantity=50)])

        assert await engine.stock.quantity(ItemType.ADDON, pearls.id) == 0
        movement = report.movements[0]
        assert movement.before == 20
        assert movement.after == 0
        assert movement.shortfall == 30
        shortfalls = [e for e in report.events if isinstance(e, StockShortfallEvent)]
        assert len(shortfalls) == 1
        assert shortfalls[0].shortfall == 30

    @pytest.mark.asyncio
    async def test_entries_for_same_item_are_merged(self, engine):
        pearls = await _addon(engine, stock=100)

        report = await engine.stock.deduct([
            ConsumptionEntry(item_type=ItemType.ADDON, item_id=pearls.id, quantity=3),
            ConsumptionEntry(item_type=ItemType.ADDON, item_id=pearls.id, quantity=4),
        ])

        assert len(report.movements) == 1
        assert report.movements[0].requested == 7
        assert await engine.stock.quantity(ItemType.ADDON, pearls.id) == 93

    @pytest.mark.asyncio
    async def test_missing_record_counts_as_zero(self, engine):
        pearls = await _addon(engine)
        await engine.stock.remove(ItemType.ADDON, pearls.id)

        report = await engine.stock.deduct([ConsumptionEntry(item_type=ItemType.ADDON, item_id=pearls.id, quantity=2)])

        assert report.movements[0].shortfall == 2
        record = await engine.stock.get(ItemType.ADDON, pearls.id)
        assert record is not None
        assert record.quantity == 0

    @pytest.mark.asyncio
    async def test_never_negative_over_many_deductions(self, engine):
        pearls = await _addon(engine, stock=5)
        for used in (2, 2, 2, 7, 1):
            await engine.stock.deduct([ConsumptionEntry(item_type=ItemType.ADDON, item_id=pearls.id, quantity=used)])
            assert await engine.stock.quantity(ItemType.ADDON, pearls.id) >= 0
        assert await engine.stock.quantity(ItemType.ADDON, pearls.id) == 0

    @pytest.mark.asyncio
    async def test_low_stock_emitted_on_crossing_only(self, engine):
        pearls = await _addon(engine, stock=12)
        entry = ConsumptionEntry(item_type=ItemType.ADDON, item_id=pearls.id, quantity=2)

        first = await engine.stock.deduct([entry])  # 12 -> 10, crosses the default threshold
        second = await engine.stock.deduct([entry])  # 10 -> 8, already below

        assert [e.kind for e in first.events] == ["low_stock"]
        assert isinstance(first.events[0], LowStockEvent)
        assert first.events[0].quantity == 10
        assert second.events == []

    @pytest.mark.asyncio
    async def test_reject_policy_refuses_before_writing(self, backend, engine):
        pearls = await _addon(engine, stock=5)
        shot = await _addon(engine, name="Extra Shot", stock=50)
        strict = StockLedger(backend, policy=OversellPolicy.REJECT)

        with pytest.raises(InsufficientStockError) as exc_info:
            await strict.deduct([
                ConsumptionEntry(item_type=ItemType.ADDON, item_id=shot.id, quantity=1),
                ConsumptionEntry(item_type=ItemType.ADDON, item_id=pearls.id, quantity=6),
            ])

        assert exc_info.value.available == 5
        assert await strict.quantity(ItemType.ADDON, shot.id) == 50
        assert await strict.quantity(ItemType.ADDON, pearls.id) == 5


class TestSetQuantity:

    @pytest.mark.asyncio
    async def test_override_and_create(self, engine):
        pearls = await _addon(engine)
        record = await engine.stock.set_quantity(ItemType.ADDON, pearls.id, "42.5")
        assert record.quantity == Decimal("42.5")
        assert record.item_type == ItemType.ADDON
        assert record.item_id == pearls.id

        await engine.stock.remove(ItemType.ADDON, pearls.id)
        assert await engine.stock.quantity(ItemType.ADDON, pearls.id) == 0
        await engine.stock.set_quantity(ItemType.ADDON, pearls.id, 7)
        assert await engine.stock.quantity(ItemType.ADDON, pearls.id) == 7

    @pytest.mark.asyncio
    async def test_negative_quantity_rejected(self, engine):
        pearls = await _addon(engine)
        with pytest.raises(ValidationError):
            await engine.stock.set_quantity(ItemType.ADDON, pearls.id, -1)

    @pytest.mark.asyncio
    async def test_list_stock(self, engine, menu):
        records = await engine.stock.list_stock()
        by_item = {r.item_id: r.quantity for r in records}
        assert by_item[menu.cup.id] == 300
        assert by_item[menu.beans.id] == 1000
        assert by_item[menu.shot.id] == 100


class TestDispatcher:

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self):
        received = []

        def broken(event):
            raise RuntimeError("ui gone")

        async def collect(event):
            received.append(event)

        dispatcher = StockEventDispatcher([broken, collect])
        event = LowStockEvent(item_type=ItemType.MATERIAL, item_id=uuid4(), quantity=Decimal("3"), threshold=Decimal("10"))
        await dispatcher.dispatch(event)

        assert received == [event]

    @pytest.mark.asyncio
    async def test_publish_reaches_subscribers(self, engine):
        received = []
        engine.events.subscribe(received.append)
        pearls = await _addon(engine, stock=12)

        report = await engine.stock.deduct([ConsumptionEntry(item_type=ItemType.ADDON, item_id=pearls.id, quantity=15)])
        await engine.stock.publish(report)

        assert {e.kind for e in received} == {"low_stock", "shortfall"}

        engine.events.unsubscribe(received.append)
        await engine.stock.publish(report)
        assert len(received) == 2
