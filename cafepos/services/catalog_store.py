import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel

from cafepos.core.exceptions import IntegrityConflict, ValidationError
from cafepos.schemas.catalog import (
    AddonInput,
    AddonRecord,
    CatalogRecord,
    CatalogType,
    FlavorImportResult,
    FlavorInput,
    FlavorRecord,
    IngredientInput,
    IngredientRecord,
    MaterialInput,
    MaterialRecord,
    ProductInput,
    ProductRecord,
    SizeInput,
    SizeRecord,
)
from cafepos.schemas.common import money, name_key, quantity, utc_now
from cafepos.schemas.stock import STOCK_COLUMNS, ItemType
from cafepos.services.stock_ledger import StockLedger
from cafepos.storage.base import Record, StorageBackend, plain_value

log = logging.getLogger(__name__)

UNIT_PRICE = Decimal("0.0001")

INPUT_TYPES = {
    CatalogType.FLAVOR: FlavorInput,
    CatalogType.MATERIAL: MaterialInput,
    CatalogType.INGREDIENT: IngredientInput,
    CatalogType.ADDON: AddonInput,
    CatalogType.PRODUCT: ProductInput,
}

RECORD_TYPES = {
    CatalogType.FLAVOR: FlavorRecord,
    CatalogType.MATERIAL: MaterialRecord,
    CatalogType.INGREDIENT: IngredientRecord,
    CatalogType.ADDON: AddonRecord,
    CatalogType.PRODUCT: ProductRecord,
}

# Catalog types whose entities carry a stock record
STOCKED_TYPES = {
    CatalogType.MATERIAL: ItemType.MATERIAL,
    CatalogType.INGREDIENT: ItemType.INGREDIENT,
    CatalogType.ADDON: ItemType.ADDON,
}

DEFAULT_FLAVORS = (
    "Americano", "Cinnamon", "Salted Caramel", "Creamy Vanilla", "Mocha", "Honeycomb Latte",
    "Tiramisu", "Caramel Macchiato", "Spanish Latte", "Matcha Latte", "Matcha Caramel",
    "Mango Matcha Latte", "Strawberry Matcha Latte", "Blueberry Matcha Latte", "Coffee Float",
    "Strawberry Float", "Blueberry Float", "Sprite Float", "Coke Float", "Matcha Float",
    "Kiwi Will Rock You", "Blueberry Licious", "Tipsy Strawberry", "Edi Wow Grape",
    "Mango Tango", "Honey Orange Ginger", "Okinawa", "Taro", "Wintermelon", "Red Velvet",
    "Cookies and Cream", "Chocolate", "Mango Cheesecake", "Matcha", "Minty Matcha",
    "Choco Mint", "Blueberry Graham", "Mango Graham", "Avocado Graham", "Cookies and Cream Graham",
    "Dark Chocolate S'mores", "Matcha S'mores", "Red Velvet S'mores", "Caramel Macchiato S'mores",
    "Cookies and Cream S'mores", "Lemonade", "Tropical Berry Lemon", "Kiwi Lemonade",
    "Honey Lemon", "Hot Choco",
)

Payload = Union[BaseModel, Dict[str, Any]]


def _id(value: Any) -> str:
    return plain_value(value)


class CatalogStore:
    """
    Named catalog entities (products, flavors, materials, ingredients, add-ons).

    Names are unique per type, ignoring case and surrounding whitespace.
    Creating an entity whose name already exists returns the existing one
    instead of failing, so callers (admin forms, seeding, migration) can
    create freely.
    """

    def __init__(self, backend: StorageBackend, stock: StockLedger):
        self.backend = backend
        self.stock = stock

    # ---------- payload handling ----------

    @staticmethod
    def _coerce(entity_type: CatalogType, payload: Payload) -> BaseModel:
        input_type = INPUT_TYPES[entity_type]
        if isinstance(payload, input_type):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        try:
            return input_type.model_validate(payload)
        except ValueError as e:
            raise ValidationError(f"Invalid {entity_type.value} payload: {e}") from e

    @staticmethod
    def _columns(entity_type: CatalogType, data: BaseModel) -> Record:
        """Stored columns for an entity, with derived prices filled in."""
        columns: Record = {"name": data.name, "name_key": name_key(data.name)}

        if entity_type == CatalogType.MATERIAL:
            packaged = data.is_package and data.package_price is not None and data.units_per_package
            if packaged:
                price_per_piece = (data.package_price / data.units_per_package).quantize(UNIT_PRICE)
            else:
                price_per_piece = data.price_per_piece
            columns.update(
                is_package=data.is_package,
                package_price=money(data.package_price) if data.is_package and data.package_price is not None else None,
                units_per_package=quantity(data.units_per_package) if data.is_package and data.units_per_package else None,
                price_per_piece=price_per_piece,
            )
        elif entity_type == CatalogType.INGREDIENT:
            columns.update(
                measurement_unit=data.measurement_unit,
                price_per_purchase=money(data.price_per_purchase),
                units_per_purchase=quantity(data.units_per_purchase),
                price_per_unit=(data.price_per_purchase / data.units_per_purchase).quantize(UNIT_PRICE),
            )
        elif entity_type == CatalogType.ADDON:
            columns["price"] = money(data.price)
        elif entity_type == CatalogType.PRODUCT:
            columns.update(category=data.category, image_url=data.image_url)
        return columns

    async def _resolve_flavors(self, names: Iterable[str]) -> List[str]:
        """Flavor ids for the given names, creating unknown flavors on the way."""
        ids: List[str] = []
        for flavor_name in names:
            flavor = await self.create(CatalogType.FLAVOR, {"name": flavor_name})
            if str(flavor.id) not in ids:
                ids.append(str(flavor.id))
        return ids

    async def _check_sizes(self, sizes: List[SizeInput]) -> None:
        seen = set()
        for size in sizes:
            key = name_key(size.name)
            if key in seen:
                raise ValidationError(f"Size '{size.name}' is listed twice.")
            seen.add(key)
            for usage in size.materials:
                if await self.backend.read_entity("materials", usage.material_id) is None:
                    raise ValidationError(f"Unknown material {usage.material_id} in size '{size.name}'.")
            for usage in size.ingredients:
                if await self.backend.read_entity("ingredients", usage.ingredient_id) is None:
                    raise ValidationError(f"Unknown ingredient {usage.ingredient_id} in size '{size.name}'.")

    async def _write_product_parts(self, product_id: str, flavor_ids: List[str], sizes: List[SizeInput]) -> None:
        now = utc_now()
        for flavor_id in flavor_ids:
            await self.backend.create_entity("product_flavors", {"product_id": product_id, "flavor_id": flavor_id})
        for size in sizes:
            row = await self.backend.create_entity(
                "sizes",
                {"product_id": product_id, "name": size.name, "price": money(size.price), "created_at": now},
            )
            for usage in size.materials:
                await self.backend.create_entity(
                    "size_materials",
                    {"size_id": row["id"], "material_id": usage.material_id, "quantity": quantity(usage.quantity)},
                )
            for usage in size.ingredients:
                await self.backend.create_entity(
                    "size_ingredients",
                    {"size_id": row["id"], "ingredient_id": usage.ingredient_id, "quantity": quantity(usage.quantity)},
                )

    async def _drop_product_parts(self, product_id: str) -> None:
        size_ids = [_id(row["id"]) for row in await self.backend.read_entities("sizes", product_id=product_id)]
        if size_ids:
            await self.backend.delete_where("size_materials", size_id__in=size_ids)
            await self.backend.delete_where("size_ingredients", size_id__in=size_ids)
            await self.backend.delete_where("sizes", product_id=product_id)
        await self.backend.delete_where("product_flavors", product_id=product_id)

    # ---------- hydration ----------

    async def _hydrate(self, entity_type: CatalogType, rows: List[Record]) -> List[CatalogRecord]:
        rows = [dict(row) for row in rows]
        if not rows:
            return []

        if entity_type in STOCKED_TYPES:
            column = STOCK_COLUMNS[STOCKED_TYPES[entity_type]]
            ids = [_id(row["id"]) for row in rows]
            stock = {
                _id(s[column]): s["quantity"]
                for s in await self.backend.read_entities("stock", **{f"{column}__in": ids})
            }
            for row in rows:
                row["stock_quantity"] = stock.get(_id(row["id"]))

        if entity_type == CatalogType.PRODUCT:
            await self._attach_product_parts(rows)

        record_type = RECORD_TYPES[entity_type]
        return [record_type.model_validate(row) for row in rows]

    async def _attach_product_parts(self, rows: List[Record]) -> None:
        product_ids = [_id(row["id"]) for row in rows]

        links = await self.backend.read_entities("product_flavors", product_id__in=product_ids)
        flavor_rows = await self.backend.read_entities(
            "flavors", id__in=list({_id(link["flavor_id"]) for link in links})
        ) if links else []
        flavors = {_id(f["id"]): FlavorRecord.model_validate(f) for f in flavor_rows}

        size_rows = await self.backend.read_entities("sizes", product_id__in=product_ids)
        size_ids = [_id(s["id"]) for s in size_rows]
        recipes: Dict[str, Dict[str, list]] = {sid: {"materials": [], "ingredients": []} for sid in size_ids}
        if size_ids:
            for usage in await self.backend.read_entities("size_materials", size_id__in=size_ids):
                recipes[_id(usage["size_id"])]["materials"].append(
                    {"material_id": usage["material_id"], "quantity": usage["quantity"]}
                )
            for usage in await self.backend.read_entities("size_ingredients", size_id__in=size_ids):
                recipes[_id(usage["size_id"])]["ingredients"].append(
                    {"ingredient_id": usage["ingredient_id"], "quantity": usage["quantity"]}
                )

        sizes: Dict[str, List[SizeRecord]] = {}
        for s in size_rows:
            record = SizeRecord.model_validate({**s, **recipes[_id(s["id"])]})
            sizes.setdefault(str(record.product_id), []).append(record)

        for row in rows:
            pid = _id(row["id"])
            row["flavors"] = sorted(
                (flavors[_id(link["flavor_id"])] for link in links
                 if _id(link["product_id"]) == pid and _id(link["flavor_id"]) in flavors),
                key=lambda f: name_key(f.name),
            )
            row["sizes"] = sorted(sizes.get(pid, []), key=lambda s: (s.price, name_key(s.name)))

    # ---------- operations ----------

    async def get(self, entity_type: CatalogType, entity_id: Union[UUID, str]) -> Optional[CatalogRecord]:
        row = await self.backend.read_entity(entity_type.value, entity_id)
        if row is None:
            return None
        return (await self._hydrate(entity_type, [row]))[0]

    async def list(self, entity_type: CatalogType) -> List[CatalogRecord]:
        """All entities of a type, ordered by name ignoring case."""
        rows = await self.backend.read_entities(entity_type.value)
        rows.sort(key=lambda r: r["name_key"])
        return await self._hydrate(entity_type, rows)

    async def find_by_name(self, entity_type: CatalogType, name: str) -> Optional[CatalogRecord]:
        rows = await self.backend.read_entities(entity_type.value, name_key=name_key(name))
        if not rows:
            return None
        return (await self._hydrate(entity_type, rows[:1]))[0]

    async def create(self, entity_type: CatalogType, payload: Payload) -> CatalogRecord:
        """
        Creates an entity, or returns the existing one with the same name.

        The lookup before the insert covers the common case. Under the
        transactional backend the unique name_key index also catches a
        concurrent insert, and the conflict resolves to the stored row.
        """
        data = self._coerce(entity_type, payload)
        existing = await self.find_by_name(entity_type, data.name)
        if existing is not None:
            log.info(f"{entity_type.value}: '{data.name}' already exists, reusing {existing.id}.")
            return existing

        flavor_ids: List[str] = []
        if entity_type == CatalogType.PRODUCT:
            await self._check_sizes(data.sizes)
            flavor_ids = await self._resolve_flavors(data.flavors)

        columns = self._columns(entity_type, data)
        columns["created_at"] = utc_now()
        try:
            async with self.backend.unit_of_work():
                row = await self.backend.create_entity(entity_type.value, columns)
                entity_id = _id(row["id"])
                if entity_type == CatalogType.PRODUCT:
                    await self._write_product_parts(entity_id, flavor_ids, data.sizes)
                if entity_type in STOCKED_TYPES:
                    await self.stock.set_quantity(STOCKED_TYPES[entity_type], entity_id, data.stock_quantity or 0)
        except IntegrityConflict:
            existing = await self.find_by_name(entity_type, data.name)
            if existing is None:
                raise
            log.info(f"{entity_type.value}: '{data.name}' was inserted concurrently, reusing {existing.id}.")
            return existing

        log.info(f"{entity_type.value}: created '{data.name}' ({entity_id}).")
        return await self.get(entity_type, entity_id)

    async def update(self, entity_type: CatalogType, entity_id: Union[UUID, str], payload: Payload) -> Optional[CatalogRecord]:
        """Overwrites an entity. Products get their sizes and flavor links replaced."""
        entity_id = _id(entity_id)
        if await self.backend.read_entity(entity_type.value, entity_id) is None:
            return None

        data = self._coerce(entity_type, payload)
        clash = await self.find_by_name(entity_type, data.name)
        if clash is not None and str(clash.id) != entity_id:
            raise ValidationError(f"Another {entity_type.value} entry is already named '{clash.name}'.")

        flavor_ids: List[str] = []
        if entity_type == CatalogType.PRODUCT:
            await self._check_sizes(data.sizes)
            flavor_ids = await self._resolve_flavors(data.flavors)

        try:
            async with self.backend.unit_of_work():
                await self.backend.update_entity(entity_type.value, entity_id, self._columns(entity_type, data))
                if entity_type == CatalogType.PRODUCT:
                    await self._drop_product_parts(entity_id)
                    await self._write_product_parts(entity_id, flavor_ids, data.sizes)
                if entity_type in STOCKED_TYPES and data.stock_quantity is not None:
                    await self.stock.set_quantity(STOCKED_TYPES[entity_type], entity_id, data.stock_quantity)
        except IntegrityConflict as e:
            raise ValidationError(f"Could not rename {entity_type.value} entry to '{data.name}': {e}") from e

        log.info(f"{entity_type.value}: updated {entity_id}.")
        return await self.get(entity_type, entity_id)

    async def delete(self, entity_type: CatalogType, entity_id: Union[UUID, str]) -> bool:
        """
        Deletes an entity together with its stock record and the rows linking
        it to products. Order history keeps its own snapshot and is untouched.
        """
        entity_id = _id(entity_id)
        async with self.backend.unit_of_work():
            if await self.backend.read_entity(entity_type.value, entity_id) is None:
                return False
            if entity_type == CatalogType.PRODUCT:
                await self._drop_product_parts(entity_id)
            elif entity_type == CatalogType.FLAVOR:
                await self.backend.delete_where("product_flavors", flavor_id=entity_id)
            elif entity_type == CatalogType.MATERIAL:
                await self.backend.delete_where("size_materials", material_id=entity_id)
            elif entity_type == CatalogType.INGREDIENT:
                await self.backend.delete_where("size_ingredients", ingredient_id=entity_id)
            if entity_type in STOCKED_TYPES:
                await self.stock.remove(STOCKED_TYPES[entity_type], entity_id)
            deleted = await self.backend.delete_entity(entity_type.value, entity_id)
        log.info(f"{entity_type.value}: deleted {entity_id}.")
        return deleted

    async def import_default_flavor_set(self, replace: bool = False) -> FlavorImportResult:
        """
        Seeds the default flavor list. Existing flavors are reused; with
        ``replace`` every flavor outside the default list is deleted first.
        """
        removed = 0
        if replace:
            keep = {name_key(name) for name in DEFAULT_FLAVORS}
            for flavor in await self.list(CatalogType.FLAVOR):
                if name_key(flavor.name) not in keep:
                    removed += await self.delete(CatalogType.FLAVOR, flavor.id)

        existing = {row["name_key"] for row in await self.backend.read_entities(CatalogType.FLAVOR.value)}
        created = reused = 0
        for flavor_name in DEFAULT_FLAVORS:
            if name_key(flavor_name) in existing:
                reused += 1
                continue
            await self.create(CatalogType.FLAVOR, {"name": flavor_name})
            created += 1
        log.info(f"Default flavors imported: {created} created, {reused} reused, {removed} removed.")
        return FlavorImportResult(created=created, reused=reused, removed=removed)
