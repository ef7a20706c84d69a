import json
import logging
import uuid
from contextlib import asynccontextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

from cafepos.core.config import FALLBACK_KEY_PREFIX
from cafepos.core.exceptions import IntegrityConflict, StorageError
from cafepos.storage.base import TABLES, Record, StorageBackend, plain_value
from cafepos.storage.kv_store import KeyValueStore

log = logging.getLogger(__name__)


def _matches(row: Record, filters: Dict[str, Any]) -> bool:
    for key, expected in filters.items():
        if key.endswith("__in"):
            allowed = {plain_value(v) for v in expected}
            if row.get(key[:-4]) not in allowed:
                return False
        elif row.get(key) != plain_value(expected):
            return False
    return True


def _sort(rows: List[Record], order_by: Sequence[str]) -> List[Record]:
    # Stable sorts applied from the least significant key
    for ordering in reversed(order_by):
        field = ordering.lstrip("-")
        rows.sort(
            key=lambda r: (r.get(field) is None, r.get(field) if r.get(field) is not None else ""),
            reverse=ordering.startswith("-"),
        )
    return rows


class FallbackBackend(StorageBackend):
    """
    Key-value fallback used when no embedded database is available.

    Each table is one JSON document: every operation reads the whole
    collection, mutates it in memory and writes it back. There is no
    atomicity across operations; ``unit_of_work`` only groups them for
    logging, and a failure part-way leaves the earlier writes in place.
    """

    name = "fallback"
    transactional = False

    def __init__(self, store: KeyValueStore, key_prefix: str = FALLBACK_KEY_PREFIX):
        self.store = store
        self.key_prefix = key_prefix

    def _key(self, table: str) -> str:
        if table not in TABLES:
            raise StorageError(f"Unknown table: {table}", table=table)
        return f"{self.key_prefix}{table}"

    def _load(self, table: str) -> List[Record]:
        raw = self.store.get_item(self._key(table))
        if raw is None:
            return []
        try:
            rows = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt collection {table}: {e}", table=table) from e
        if not isinstance(rows, list):
            raise StorageError(f"Collection {table} is not a list", table=table)
        return rows

    def _save(self, table: str, rows: List[Record]) -> None:
        self.store.set_item(self._key(table), json.dumps(rows))

    async def create_entity(self, table: str, record: Record) -> Record:
        rows = self._load(table)
        row = plain_value(dict(record))
        row["id"] = str(row.get("id") or uuid.uuid4())
        if any(r.get("id") == row["id"] for r in rows):
            raise IntegrityConflict(f"Duplicate id {row['id']} in {table}", table=table)
        rows.append(row)
        self._save(table, rows)
        return dict(row)

    async def read_entity(self, table: str, entity_id: Any) -> Optional[Record]:
        wanted = plain_value(entity_id)
        for row in self._load(table):
            if row.get("id") == wanted:
                return dict(row)
        return None

    async def read_entities(self, table: str, order_by: Optional[Sequence[str]] = None, **filters: Any) -> List[Record]:
        rows = [dict(r) for r in self._load(table) if _matches(r, filters)]
        if order_by:
            rows = _sort(rows, order_by)
        return rows

    async def update_entity(self, table: str, entity_id: Any, changes: Record) -> Optional[Record]:
        wanted = plain_value(entity_id)
        rows = self._load(table)
        for row in rows:
            if row.get("id") == wanted:
                row.update(plain_value(dict(changes)))
                self._save(table, rows)
                return dict(row)
        return None

    async def delete_entity(self, table: str, entity_id: Any) -> bool:
        wanted = plain_value(entity_id)
        rows = self._load(table)
        kept = [r for r in rows if r.get("id") != wanted]
        if len(kept) == len(rows):
            return False
        self._save(table, kept)
        return True

    async def delete_where(self, table: str, **filters: Any) -> int:
        rows = self._load(table)
        kept = [r for r in rows if not _matches(r, filters)]
        removed = len(rows) - len(kept)
        if removed:
            self._save(table, kept)
        return removed

    async def count(self, table: str, **filters: Any) -> int:
        return sum(1 for r in self._load(table) if _matches(r, filters))

    async def sum_by(self, table: str, value_field: str, group_field: str, **filters: Any) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = {}
        for row in self._load(table):
            if not _matches(row, filters):
                continue
            try:
                value = Decimal(str(row.get(value_field) or 0))
            except InvalidOperation as e:
                raise StorageError(f"Non-numeric {value_field} in {table}: {row.get(value_field)!r}", table=table) from e
            group = row.get(group_field)
            totals[group] = totals.get(group, Decimal("0")) + value
        return totals

    @asynccontextmanager
    async def unit_of_work(self):
        # No transaction to open: each step below persists on its own
        yield None

    async def clear(self) -> None:
        for table in TABLES:
            self.store.remove_item(self._key(table))
        log.info("Fallback store cleared.")
