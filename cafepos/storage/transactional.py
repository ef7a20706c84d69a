import contextvars
import logging
from contextlib import asynccontextmanager, contextmanager
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from tortoise.exceptions import BaseORMException, IntegrityError
from tortoise.functions import Sum
from tortoise.transactions import in_transaction

from cafepos.core.config import DB_URL
from cafepos.core.db import close_db, init_db
from cafepos.core.exceptions import IntegrityConflict, StorageError
from cafepos.models import (
    Addon,
    CashFlowTransaction,
    Flavor,
    Ingredient,
    Material,
    Order,
    Product,
    ProductFlavor,
    Setting,
    Size,
    SizeIngredient,
    SizeMaterial,
    Stock,
)
from cafepos.storage.base import TABLES, Record, StorageBackend, plain_value

log = logging.getLogger(__name__)

TABLE_MODELS = {
    "flavors": Flavor,
    "materials": Material,
    "ingredients": Ingredient,
    "addons": Addon,
    "products": Product,
    "product_flavors": ProductFlavor,
    "sizes": Size,
    "size_materials": SizeMaterial,
    "size_ingredients": SizeIngredient,
    "stock": Stock,
    "orders": Order,
    "cash_flow_transactions": CashFlowTransaction,
    "settings": Setting,
}

# Connection of the unit of work currently running in this task, if any
_current_conn: contextvars.ContextVar = contextvars.ContextVar("cafepos_uow_conn", default=None)


@contextmanager
def _orm_errors(table: str):
    """Translates ORM exceptions into the engine's storage errors."""
    try:
        yield
    except IntegrityError as e:
        raise IntegrityConflict(f"Constraint violated on {table}: {e}", table=table) from e
    except BaseORMException as e:
        raise StorageError(f"Database error on {table}: {e}", table=table) from e


class TransactionalBackend(StorageBackend):
    """
    Embedded relational store (Tortoise ORM over SQLite).

    Every operation joins the unit of work opened by ``unit_of_work()`` in the
    current task, so a commit either applies all of its writes or none.
    """

    name = "transactional"
    transactional = True

    def __init__(self, connection_name: Optional[str] = None):
        self.connection_name = connection_name

    @classmethod
    async def open(cls, db_url: str = DB_URL) -> "TransactionalBackend":
        """Connects Tortoise, creates the schema and returns a ready backend."""
        await init_db(db_url)
        return cls()

    async def close(self) -> None:
        await close_db()

    @staticmethod
    def _model(table: str):
        try:
            return TABLE_MODELS[table]
        except KeyError:
            raise StorageError(f"Unknown table: {table}", table=table)

    @staticmethod
    def _conn():
        return _current_conn.get()

    async def create_entity(self, table: str, record: Record) -> Record:
        model = self._model(table)
        with _orm_errors(table):
            obj = await model.create(using_db=self._conn(), **record)
        return await self.read_entity(table, obj.pk)

    async def read_entity(self, table: str, entity_id: Any) -> Optional[Record]:
        model = self._model(table)
        with _orm_errors(table):
            rows = await model.filter(id=entity_id).using_db(self._conn()).values()
        return rows[0] if rows else None

    async def read_entities(self, table: str, order_by: Optional[Sequence[str]] = None, **filters: Any) -> List[Record]:
        model = self._model(table)
        with _orm_errors(table):
            query = model.filter(**filters).using_db(self._conn())
            if order_by:
                query = query.order_by(*order_by)
            return await query.values()

    async def update_entity(self, table: str, entity_id: Any, changes: Record) -> Optional[Record]:
        model = self._model(table)
        with _orm_errors(table):
            updated = await model.filter(id=entity_id).using_db(self._conn()).update(**changes)
        if not updated:
            return None
        return await self.read_entity(table, entity_id)

    async def delete_entity(self, table: str, entity_id: Any) -> bool:
        model = self._model(table)
        with _orm_errors(table):
            deleted = await model.filter(id=entity_id).using_db(self._conn()).delete()
        return bool(deleted)

    async def delete_where(self, table: str, **filters: Any) -> int:
        model = self._model(table)
        with _orm_errors(table):
            return await model.filter(**filters).using_db(self._conn()).delete()

    async def count(self, table: str, **filters: Any) -> int:
        model = self._model(table)
        with _orm_errors(table):
            return await model.filter(**filters).using_db(self._conn()).count()

    async def sum_by(self, table: str, value_field: str, group_field: str, **filters: Any) -> Dict[str, Decimal]:
        """Grouped SUM pushed down to SQL."""
        model = self._model(table)
        with _orm_errors(table):
            rows = await (
                model.filter(**filters)
                .using_db(self._conn())
                .annotate(total=Sum(value_field))
                .group_by(group_field)
                .values(group_field, "total")
            )
        return {
            plain_value(row[group_field]): Decimal(str(row["total"] or 0))
            for row in rows
        }

    @asynccontextmanager
    async def unit_of_work(self):
        """One database transaction; nested units join the outer one."""
        outer = _current_conn.get()
        if outer is not None:
            yield outer
            return
        async with in_transaction(self.connection_name) as conn:
            token = _current_conn.set(conn)
            try:
                yield conn
            finally:
                _current_conn.reset(token)

    async def clear(self) -> None:
        async with self.unit_of_work():
            # Children before parents so foreign keys never dangle
            for table in reversed(TABLES):
                await self.delete_where(table)
        log.info("Transactional store cleared.")
