import logging
from typing import Dict, List, Optional

from cafepos.core.exceptions import CafePosError, StorageError
from cafepos.schemas.cash_flow import TransactionRecord
from cafepos.schemas.catalog import CatalogType, IngredientUsage, MaterialUsage, SizeInput
from cafepos.schemas.migration import DataPresence, EntityCount, MigrationResult
from cafepos.schemas.order import OrderRecord
from cafepos.schemas.stock import STOCK_COLUMNS
from cafepos.services.catalog_store import INPUT_TYPES, STOCKED_TYPES, CatalogStore
from cafepos.storage.base import Record, StorageBackend, plain_value

log = logging.getLogger(__name__)

MIGRATION_FLAG = "migration_completed"

# Leaf entities first so products can point at their new ids
CATALOG_ORDER = (
    CatalogType.FLAVOR,
    CatalogType.MATERIAL,
    CatalogType.INGREDIENT,
    CatalogType.ADDON,
)


class MigrationImporter:
    """
    One-shot import of everything held in the fallback store into the
    transactional database.

    Catalog entities go through the catalog's dedup-aware create, so running
    the import twice never duplicates them. Orders and cash-flow transactions
    keep their ids and are skipped when already present. The fallback data is
    only cleared after a run without errors.
    """

    def __init__(self, source: StorageBackend, target: StorageBackend, catalog: CatalogStore):
        self.source = source
        self.target = target
        self.catalog = catalog

    async def is_completed(self) -> bool:
        rows = await self.target.read_entities("settings", key=MIGRATION_FLAG)
        return bool(rows) and rows[0]["value"] == "true"

    async def _mark_completed(self) -> None:
        rows = await self.target.read_entities("settings", key=MIGRATION_FLAG)
        if rows:
            await self.target.update_entity("settings", rows[0]["id"], {"value": "true"})
        else:
            await self.target.create_entity("settings", {"key": MIGRATION_FLAG, "value": "true"})

    async def check_data_exists(self) -> DataPresence:
        return DataPresence(
            fallback=not await self.source.is_empty(),
            transactional=not await self.target.is_empty(),
        )

    @staticmethod
    def _payload(entity_type: CatalogType, row: Record) -> Dict:
        fields = INPUT_TYPES[entity_type].model_fields
        return {k: v for k, v in row.items() if k in fields and v is not None}

    async def _read(self, result: MigrationResult, table: str) -> Optional[List[Record]]:
        """Reads a source table; an unreadable one is reported and yields None."""
        try:
            return await self.source.read_entities(table)
        except StorageError as e:
            message = f"{table}: {e}"
            if message not in result.errors:
                result.errors.append(message)
            log.error(f"Fallback table {table} could not be read: {e}")
            return None

    async def _migrate_catalog(self, result: MigrationResult, id_map: Dict[str, str]) -> None:
        stock_rows = await self._read(result, "stock") or []
        for entity_type in CATALOG_ORDER:
            rows = await self._read(result, entity_type.value)
            if rows is None:
                result.per_entity_counts[entity_type.value] = EntityCount()
                continue
            count = EntityCount(total=len(rows))
            stock = {}
            if entity_type in STOCKED_TYPES:
                column = STOCK_COLUMNS[STOCKED_TYPES[entity_type]]
                stock = {plain_value(s[column]): s["quantity"] for s in stock_rows if s.get(column)}

            for row in rows:
                source_id = plain_value(row["id"])
                try:
                    payload = self._payload(entity_type, row)
                    record = await self.catalog.create(entity_type, payload)
                    # A reused entity still takes the quantity counted in the fallback store
                    if source_id in stock:
                        await self.catalog.stock.set_quantity(STOCKED_TYPES[entity_type], record.id, stock[source_id])
                    id_map[source_id] = str(record.id)
                    count.migrated += 1
                except (CafePosError, ValueError) as e:
                    result.errors.append(f"{entity_type.value} '{row.get('name')}': {e}")
            result.per_entity_counts[entity_type.value] = count
            log.info(f"Migrated {count.migrated}/{count.total} {entity_type.value}.")

    async def _product_sizes(self, product_id: str, id_map: Dict[str, str]) -> List[SizeInput]:
        sizes = []
        for size in await self.source.read_entities("sizes", product_id=product_id):
            size_id = plain_value(size["id"])
            materials = []
            for usage in await self.source.read_entities("size_materials", size_id=size_id):
                material_id = id_map.get(plain_value(usage["material_id"]))
                if material_id is None:
                    log.warning(f"Size '{size['name']}': material {usage['material_id']} was not migrated, recipe line dropped.")
                    continue
                materials.append(MaterialUsage(material_id=material_id, quantity=usage["quantity"]))
            ingredients = []
            for usage in await self.source.read_entities("size_ingredients", size_id=size_id):
                ingredient_id = id_map.get(plain_value(usage["ingredient_id"]))
                if ingredient_id is None:
                    log.warning(f"Size '{size['name']}': ingredient {usage['ingredient_id']} was not migrated, recipe line dropped.")
                    continue
                ingredients.append(IngredientUsage(ingredient_id=ingredient_id, quantity=usage["quantity"]))
            sizes.append(SizeInput(name=size["name"], price=size["price"], materials=materials, ingredients=ingredients))
        return sizes

    async def _migrate_products(self, result: MigrationResult, id_map: Dict[str, str]) -> None:
        flavor_names = {plain_value(f["id"]): f["name"] for f in await self._read(result, "flavors") or []}
        rows = await self._read(result, "products")
        if rows is None:
            result.per_entity_counts["products"] = EntityCount()
            return
        count = EntityCount(total=len(rows))
        for row in rows:
            product_id = plain_value(row["id"])
            try:
                flavors = []
                for link in await self.source.read_entities("product_flavors", product_id=product_id):
                    name = flavor_names.get(plain_value(link["flavor_id"]))
                    if name is None:
                        log.warning(f"Product '{row['name']}': unknown flavor {link['flavor_id']} skipped.")
                        continue
                    flavors.append(name)
                payload = self._payload(CatalogType.PRODUCT, row)
                payload.update(flavors=flavors, sizes=await self._product_sizes(product_id, id_map))
                await self.catalog.create(CatalogType.PRODUCT, payload)
                count.migrated += 1
            except (CafePosError, ValueError) as e:
                result.errors.append(f"products '{row.get('name')}': {e}")
        result.per_entity_counts["products"] = count
        log.info(f"Migrated {count.migrated}/{count.total} products.")

    async def _migrate_history(self, result: MigrationResult, table: str, record_type) -> None:
        rows = await self._read(result, table)
        if rows is None:
            result.per_entity_counts[table] = EntityCount()
            return
        count = EntityCount(total=len(rows))
        for row in rows:
            try:
                record = record_type.model_validate(row)
                if await self.target.read_entity(table, record.id) is None:
                    data = record.model_dump()
                    if table == "orders":
                        data["items"] = [item.model_dump(mode="json") for item in record.items]
                    await self.target.create_entity(table, data)
                count.migrated += 1
            except (CafePosError, ValueError) as e:
                result.errors.append(f"{table} {row.get('id')}: {e}")
        result.per_entity_counts[table] = count
        log.info(f"Migrated {count.migrated}/{count.total} {table}.")

    async def migrate_all(self) -> MigrationResult:
        """
        Copies every entity from the fallback store. On full success the
        fallback store is cleared and the completion flag is set; otherwise
        the fallback data is kept and the errors are returned.
        """
        log.info("Starting migration from fallback storage...")
        result = MigrationResult(success=False)
        id_map: Dict[str, str] = {}

        await self._migrate_catalog(result, id_map)
        await self._migrate_products(result, id_map)
        await self._migrate_history(result, "orders", OrderRecord)
        await self._migrate_history(result, "cash_flow_transactions", TransactionRecord)

        if result.errors:
            log.error(f"Migration finished with {len(result.errors)} error(s); fallback data kept.")
            return result

        try:
            await self.source.clear()
        except StorageError as e:
            result.errors.append(f"clearing fallback storage: {e}")
            log.error(f"Migration copied everything but fallback storage could not be cleared: {e}")
            return result
        await self._mark_completed()
        result.success = True
        log.info("Migration completed, fallback storage cleared.")
        return result

    async def run_on_startup(self) -> MigrationResult:
        """
        Migrates once: only when not done before, fallback has data and the
        database is empty. Otherwise returns a skipped result.
        """
        if await self.is_completed():
            log.info("Migration already completed, skipping.")
            return MigrationResult(success=True, skipped=True)
        try:
            presence = await self.check_data_exists()
        except StorageError as e:
            log.error(f"Fallback storage unreadable, migration skipped: {e}")
            return MigrationResult(success=False, skipped=True, errors=[str(e)])
        if not presence.fallback or presence.transactional:
            log.info(f"Nothing to migrate (fallback data: {presence.fallback}, database data: {presence.transactional}).")
            return MigrationResult(success=True, skipped=True)
        return await self.migrate_all()
