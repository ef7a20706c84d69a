import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from cafepos.core.exceptions import IntegrityConflict, StorageError
from cafepos.models.cash_flow import TransactionCategory, TransactionType
from cafepos.storage.fallback import FallbackBackend
from cafepos.storage.kv_store import JsonFileStore, MemoryStore


def _flavor(name, **extra):
    row = {"name": name, "name_key": name.casefold(), "created_at": datetime.now(timezone.utc)}
    row.update(extra)
    return row


def _transaction(kind, amount, minutes_ago=0):
    return {
        "type": kind,
        "category": TransactionCategory.CASH_DEPOSIT,
        "amount": Decimal(amount),
        "description": "test",
        "created_at": datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    }


class TestStorageContract:
    """Behaviour both backends must share."""

    @pytest.mark.asyncio
    async def test_create_and_read(self, backend):
        row = await backend.create_entity("flavors", _flavor("Mocha"))
        assert row["id"]

        fetched = await backend.read_entity("flavors", row["id"])
        assert fetched["name"] == "Mocha"
        assert await backend.read_entity("flavors", uuid4()) is None

    @pytest.mark.asyncio
    async def test_filters_and_ordering(self, backend):
        a = await backend.create_entity("flavors", _flavor("Taro"))
        b = await backend.create_entity("flavors", _flavor("Americano"))
        await backend.create_entity("flavors", _flavor("Okinawa"))

        rows = await backend.read_entities("flavors", order_by=["name"])
        assert [r["name"] for r in rows] == ["Americano", "Okinawa", "Taro"]

        rows = await backend.read_entities("flavors", name_key="taro")
        assert len(rows) == 1

        rows = await backend.read_entities("flavors", id__in=[a["id"], b["id"]], order_by=["-name"])
        assert [r["name"] for r in rows] == ["Taro", "Americano"]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, backend):
        row = await backend.create_entity("flavors", _flavor("Matcha"))

        updated = await backend.update_entity("flavors", row["id"], {"name": "Matcha Latte", "name_key": "matcha latte"})
        assert updated["name"] == "Matcha Latte"
        assert await backend.update_entity("flavors", uuid4(), {"name": "x"}) is None

        assert await backend.delete_entity("flavors", row["id"]) is True
        assert await backend.delete_entity("flavors", row["id"]) is False

    @pytest.mark.asyncio
    async def test_delete_where_and_count(self, backend):
        for name in ("Lemonade", "Kiwi Lemonade", "Honey Lemon"):
            await backend.create_entity("flavors", _flavor(name))

        assert await backend.count("flavors") == 3
        assert await backend.delete_where("flavors", name_key="lemonade") == 1
        assert await backend.count("flavors") == 2
        assert await backend.is_empty() is False

        await backend.clear()
        assert await backend.is_empty() is True

    @pytest.mark.asyncio
    async def test_sum_by_groups_amounts(self, backend):
        await backend.create_entity("cash_flow_transactions", _transaction(TransactionType.INFLOW, "150.00"))
        await backend.create_entity("cash_flow_transactions", _transaction(TransactionType.INFLOW, "20.50"))
        await backend.create_entity("cash_flow_transactions", _transaction(TransactionType.OUTFLOW, "40.25"))

        totals = await backend.sum_by("cash_flow_transactions", "amount", "type")
        assert totals["INFLOW"] == Decimal("170.50")
        assert totals["OUTFLOW"] == Decimal("40.25")

    @pytest.mark.asyncio
    async def test_unique_name_key_conflict(self, backend):
        if not backend.transactional:
            pytest.skip("uniqueness is enforced by the database only")
        await backend.create_entity("flavors", _flavor("Mocha"))
        with pytest.raises(IntegrityConflict):
            await backend.create_entity("flavors", _flavor("MOCHA", name_key="mocha"))

    @pytest.mark.asyncio
    async def test_unknown_table(self, backend):
        with pytest.raises(StorageError):
            await backend.read_entities("menu_items")


class TestUnitOfWork:

    @pytest.mark.asyncio
    async def test_transactional_rolls_back(self, transactional_backend):
        async def first():
            return await transactional_backend.create_entity("flavors", _flavor("Mocha"))

        async def second():
            raise StorageError("disk gone")

        with pytest.raises(StorageError):
            await transactional_backend.run_sequence([first, second])

        assert await transactional_backend.count("flavors") == 0

    @pytest.mark.asyncio
    async def test_nested_unit_joins_outer(self, transactional_backend):
        with pytest.raises(RuntimeError):
            async with transactional_backend.unit_of_work():
                async with transactional_backend.unit_of_work():
                    await transactional_backend.create_entity("flavors", _flavor("Mocha"))
                raise RuntimeError("abort")

        assert await transactional_backend.count("flavors") == 0

    @pytest.mark.asyncio
    async def test_fallback_keeps_earlier_steps(self, fallback_backend):
        async def first():
            return await fallback_backend.create_entity("flavors", _flavor("Mocha"))

        async def second():
            raise StorageError("quota exceeded")

        with pytest.raises(StorageError):
            await fallback_backend.run_sequence([first, second])

        # No rollback on the key-value store
        assert await fallback_backend.count("flavors") == 1


class TestFallbackDocuments:

    @pytest.mark.asyncio
    async def test_collection_stored_as_one_json_document(self, memory_store, fallback_backend):
        await fallback_backend.create_entity("flavors", _flavor("Mocha"))

        raw = memory_store.get_item("cafepos_flavors")
        rows = json.loads(raw)
        assert rows[0]["name"] == "Mocha"
        assert rows[0]["created_at"].endswith("+00:00")

    @pytest.mark.asyncio
    async def test_corrupt_document_raises(self):
        backend = FallbackBackend(MemoryStore({"cafepos_flavors": "{not json"}))
        with pytest.raises(StorageError):
            await backend.read_entities("flavors")

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, fallback_backend):
        row = await fallback_backend.create_entity("flavors", _flavor("Mocha"))
        with pytest.raises(IntegrityConflict):
            await fallback_backend.create_entity("flavors", _flavor("Taro", id=row["id"]))

    @pytest.mark.asyncio
    async def test_json_file_store_persists(self, tmp_path):
        backend = FallbackBackend(JsonFileStore(str(tmp_path / "store")))
        await backend.create_entity("flavors", _flavor("Mocha"))

        reopened = FallbackBackend(JsonFileStore(str(tmp_path / "store")))
        rows = await reopened.read_entities("flavors")
        assert [r["name"] for r in rows] == ["Mocha"]
        assert (tmp_path / "store" / "cafepos_flavors.json").exists()

        await reopened.clear()
        assert JsonFileStore(str(tmp_path / "store")).keys() == []
