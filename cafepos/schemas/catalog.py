from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from cafepos.models.catalog import ProductCategory


class CatalogType(str, Enum):
    """Catalog entity types; values double as storage table names."""
    PRODUCT = "products"
    FLAVOR = "flavors"
    MATERIAL = "materials"
    INGREDIENT = "ingredients"
    ADDON = "addons"


# ---------- Inputs ----------

class NamedInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("name must not be blank")
        return value


class FlavorInput(NamedInput):
    pass


class MaterialInput(NamedInput):
    is_package: bool = False
    package_price: Optional[Decimal] = Field(None, ge=0)
    units_per_package: Optional[Decimal] = Field(None, gt=0)
    price_per_piece: Decimal = Field(Decimal("0"), ge=0)
    stock_quantity: Optional[Decimal] = Field(None, ge=0, description="Sets the on-hand quantity when given.")


class IngredientInput(NamedInput):
    measurement_unit: str = Field("piece", min_length=1, max_length=32)
    price_per_purchase: Decimal = Field(..., ge=0, description="Price of one purchase lot.")
    units_per_purchase: Decimal = Field(Decimal("1"), gt=0, description="Units contained in one purchase lot.")
    stock_quantity: Optional[Decimal] = Field(None, ge=0)


class AddonInput(NamedInput):
    price: Decimal = Field(..., ge=0)
    stock_quantity: Optional[Decimal] = Field(None, ge=0)


class MaterialUsage(BaseModel):
    material_id: UUID
    quantity: Decimal = Field(..., gt=0, description="Consumed per ordered unit.")


class IngredientUsage(BaseModel):
    ingredient_id: UUID
    quantity: Decimal = Field(..., gt=0, description="Consumed per ordered unit.")


class SizeInput(NamedInput):
    price: Decimal = Field(..., ge=0)
    materials: List[MaterialUsage] = Field(default_factory=list)
    ingredients: List[IngredientUsage] = Field(default_factory=list)


class ProductInput(NamedInput):
    category: ProductCategory = ProductCategory.INSIDE_BEVERAGES
    image_url: Optional[str] = None
    flavors: List[str] = Field(default_factory=list, description="Flavor names, resolved case-insensitively.")
    sizes: List[SizeInput] = Field(default_factory=list)


# ---------- Records ----------

class CatalogRecord(BaseModel):
    id: UUID
    name: str
    created_at: datetime


class FlavorRecord(CatalogRecord):
    pass


class MaterialRecord(CatalogRecord):
    is_package: bool
    package_price: Optional[Decimal] = None
    units_per_package: Optional[Decimal] = None
    price_per_piece: Decimal
    stock_quantity: Optional[Decimal] = None


class IngredientRecord(CatalogRecord):
    measurement_unit: str
    price_per_purchase: Decimal
    units_per_purchase: Decimal
    price_per_unit: Decimal
    stock_quantity: Optional[Decimal] = None


class AddonRecord(CatalogRecord):
    price: Decimal
    stock_quantity: Optional[Decimal] = None


class SizeRecord(BaseModel):
    id: UUID
    product_id: UUID
    name: str
    price: Decimal
    materials: List[MaterialUsage] = Field(default_factory=list)
    ingredients: List[IngredientUsage] = Field(default_factory=list)


class ProductRecord(CatalogRecord):
    category: ProductCategory
    image_url: Optional[str] = None
    flavors: List[FlavorRecord] = Field(default_factory=list)
    sizes: List[SizeRecord] = Field(default_factory=list)


class FlavorImportResult(BaseModel):
    created: int
    reused: int
    removed: int = 0
