from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from cafepos.models.order import OrderStatus, OrderType


class OrderFilter(str, Enum):
    ALL = "all"
    TODAY = "today"


# ---------- Cart (request side) ----------

class CartAddon(BaseModel):
    """An add-on selected on a cart line; quantity is in direct units."""
    addon_id: UUID
    quantity: int = Field(1, ge=1)


class CartLine(BaseModel):
    """Schema for a single line in the cart."""
    product_id: UUID
    size_id: UUID
    flavor_id: Optional[UUID] = None
    quantity: int = Field(1, ge=1)
    addons: List[CartAddon] = Field(default_factory=list)


class Cart(BaseModel):
    """Schema for the full order placement request body."""
    lines: List[CartLine] = Field(default_factory=list)
    order_type: OrderType = OrderType.DINE_IN
    paid: Decimal = Field(Decimal("0"), ge=0)
    # Counter sales are paid up front; tabs may be settled later
    require_full_payment: bool = True


# ---------- Immutable order snapshot ----------

class LinkedAddonSnapshot(BaseModel):
    kind: Literal["linked"] = "linked"
    addon_id: UUID
    name: str
    price: Decimal
    quantity: int


class LegacyAddonSnapshot(BaseModel):
    """Add-on carried over from imported history without a catalog reference."""
    kind: Literal["legacy"] = "legacy"
    name: str
    price: Decimal = Decimal("0")
    quantity: int = 1


AddonSnapshot = Annotated[Union[LinkedAddonSnapshot, LegacyAddonSnapshot], Field(discriminator="kind")]


class OrderItemSnapshot(BaseModel):
    product_id: Optional[UUID] = None
    product_name: str
    flavor_id: Optional[UUID] = None
    flavor_name: Optional[str] = None
    size_id: Optional[UUID] = None
    size_name: Optional[str] = None
    unit_price: Decimal
    quantity: int
    addons: List[AddonSnapshot] = Field(default_factory=list)
    line_total: Decimal


class OrderRecord(BaseModel):
    id: UUID
    order_type: OrderType
    order_status: OrderStatus
    total: Decimal
    paid: Decimal
    change: Decimal
    items: List[OrderItemSnapshot] = Field(default_factory=list)
    created_at: datetime


class OrderStatusUpdate(BaseModel):
    """Schema for updating an order status."""
    order_status: OrderStatus
