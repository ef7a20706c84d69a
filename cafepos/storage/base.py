"""
Persistence port shared by every engine component.

Records cross the port as plain mappings keyed by field name. Components
re-validate them into pydantic records on the way out, so both backends can
return whatever native types they store (Decimal/UUID/datetime from the ORM,
strings from JSON documents).
"""
import abc
import logging
from contextlib import AbstractAsyncContextManager
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from uuid import UUID

log = logging.getLogger(__name__)

Record = Dict[str, Any]
Step = Callable[[], Awaitable[Any]]

TABLES = (
    "flavors",
    "materials",
    "ingredients",
    "addons",
    "products",
    "product_flavors",
    "sizes",
    "size_materials",
    "size_ingredients",
    "stock",
    "orders",
    "cash_flow_transactions",
    "settings",
)

# Tables that make up the "data" of an installation (settings are bookkeeping)
DATA_TABLES = tuple(t for t in TABLES if t != "settings")


class StorageBackend(abc.ABC):
    """Abstract persistence port. See TransactionalBackend and FallbackBackend."""

    name: str = "abstract"
    # True when unit_of_work gives all-or-nothing semantics
    transactional: bool = False

    @abc.abstractmethod
    async def create_entity(self, table: str, record: Record) -> Record:
        """Inserts a record. An id is generated unless the record carries one."""

    @abc.abstractmethod
    async def read_entity(self, table: str, entity_id: Any) -> Optional[Record]:
        ...

    @abc.abstractmethod
    async def read_entities(self, table: str, order_by: Optional[Sequence[str]] = None, **filters: Any) -> List[Record]:
        """
        Returns every record matching the filters. Filters are equality checks,
        or membership checks when the key ends with ``__in``. ``order_by`` takes
        field names, prefixed with ``-`` for descending order.
        """

    @abc.abstractmethod
    async def update_entity(self, table: str, entity_id: Any, changes: Record) -> Optional[Record]:
        """Applies changes and returns the updated record, or None if unknown."""

    @abc.abstractmethod
    async def delete_entity(self, table: str, entity_id: Any) -> bool:
        ...

    @abc.abstractmethod
    async def delete_where(self, table: str, **filters: Any) -> int:
        ...

    @abc.abstractmethod
    async def count(self, table: str, **filters: Any) -> int:
        ...

    @abc.abstractmethod
    async def sum_by(self, table: str, value_field: str, group_field: str, **filters: Any) -> Dict[str, Decimal]:
        """Sums value_field per distinct group_field value (keys are plain strings)."""

    @abc.abstractmethod
    def unit_of_work(self) -> AbstractAsyncContextManager:
        """Async context manager grouping several operations."""

    @abc.abstractmethod
    async def clear(self) -> None:
        """Removes every record from every table."""

    async def close(self) -> None:
        return None

    async def run_sequence(self, steps: Sequence[Step]) -> List[Any]:
        """
        Runs the steps in order inside one unit of work and returns their results.
        Atomic only when the backend is transactional.
        """
        results: List[Any] = []
        async with self.unit_of_work():
            for index, step in enumerate(steps):
                try:
                    results.append(await step())
                except Exception:
                    if not self.transactional:
                        log.warning(
                            f"{self.name} backend: step {index + 1}/{len(steps)} failed; "
                            f"{index} earlier step(s) stay applied (no rollback)."
                        )
                    raise
        return results

    async def is_empty(self) -> bool:
        for table in DATA_TABLES:
            if await self.count(table):
                return False
        return True


def plain_value(value: Any) -> Any:
    """Reduces enums, ids, decimals and datetimes to JSON-friendly primitives."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: plain_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [plain_value(v) for v in value]
    return value
