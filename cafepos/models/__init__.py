# cafepos/models/__init__.py
from .catalog import (
    Addon,
    Flavor,
    Ingredient,
    Material,
    Product,
    ProductCategory,
    ProductFlavor,
    Size,
    SizeIngredient,
    SizeMaterial,
)
from .stock import Stock
from .order import Order, OrderStatus, OrderType
from .cash_flow import CashFlowTransaction, TransactionCategory, TransactionType
from .setting import Setting

# Export all models
__all__ = [
    "Addon",
    "CashFlowTransaction",
    "Flavor",
    "Ingredient",
    "Material",
    "Order",
    "OrderStatus",
    "OrderType",
    "Product",
    "ProductCategory",
    "ProductFlavor",
    "Setting",
    "Size",
    "SizeIngredient",
    "SizeMaterial",
    "Stock",
    "TransactionCategory",
    "TransactionType",
]
