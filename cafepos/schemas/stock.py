from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ItemType(str, Enum):
    ADDON = "addon"
    INGREDIENT = "ingredient"
    MATERIAL = "material"


# Stock table column holding the reference for each item type
STOCK_COLUMNS = {
    ItemType.ADDON: "addon_id",
    ItemType.INGREDIENT: "ingredient_id",
    ItemType.MATERIAL: "material_id",
}


class OversellPolicy(str, Enum):
    ALLOW_OVERSELL = "ALLOW_OVERSELL"  # clamp at zero and report the shortfall
    REJECT = "REJECT"


class ConsumptionEntry(BaseModel):
    item_type: ItemType
    item_id: UUID
    quantity: Decimal = Field(..., ge=0)


class StockRecord(BaseModel):
    id: UUID
    quantity: Decimal = Field(..., ge=0)
    addon_id: Optional[UUID] = None
    ingredient_id: Optional[UUID] = None
    material_id: Optional[UUID] = None
    updated_at: datetime

    @model_validator(mode="after")
    def exactly_one_item(self):
        refs = [self.addon_id, self.ingredient_id, self.material_id]
        if sum(ref is not None for ref in refs) != 1:
            raise ValueError("a stock record references exactly one addon, ingredient or material")
        return self

    @property
    def item_type(self) -> ItemType:
        for item_type, column in STOCK_COLUMNS.items():
            if getattr(self, column) is not None:
                return item_type
        raise ValueError("stock record without item reference")

    @property
    def item_id(self) -> UUID:
        return getattr(self, STOCK_COLUMNS[self.item_type])


class StockMovement(BaseModel):
    item_type: ItemType
    item_id: UUID
    before: Decimal
    requested: Decimal
    after: Decimal
    shortfall: Decimal = Decimal("0")


class LowStockEvent(BaseModel):
    kind: Literal["low_stock"] = "low_stock"
    item_type: ItemType
    item_id: UUID
    quantity: Decimal
    threshold: Decimal


class StockShortfallEvent(BaseModel):
    kind: Literal["shortfall"] = "shortfall"
    item_type: ItemType
    item_id: UUID
    requested: Decimal
    available: Decimal
    shortfall: Decimal


StockEvent = Annotated[Union[LowStockEvent, StockShortfallEvent], Field(discriminator="kind")]


class DeductionReport(BaseModel):
    movements: List[StockMovement] = Field(default_factory=list)
    events: List[StockEvent] = Field(default_factory=list)


class StockQuantityUpdate(BaseModel):
    """Schema for the administrative stock override."""
    quantity: Decimal = Field(..., ge=0)


class StockResponse(BaseModel):
    item_type: ItemType
    item_id: UUID
    quantity: Decimal
    updated_at: str
