from enum import Enum
from tortoise import fields, models
from tortoise.validators import MinValueValidator
import uuid


class TransactionType(str, Enum):
    INFLOW = "INFLOW"
    OUTFLOW = "OUTFLOW"


class TransactionCategory(str, Enum):
    ORDER_PAYMENT = "ORDER_PAYMENT"
    CASH_DEPOSIT = "CASH_DEPOSIT"
    STOCK_PURCHASE = "STOCK_PURCHASE"
    EXPENSE = "EXPENSE"
    REFUND = "REFUND"
    CASH_ADJUSTMENT = "CASH_ADJUSTMENT"


class CashFlowTransaction(models.Model):
    """
    Append-only cash drawer ledger. Rows are never updated or deleted; the
    drawer balance is always derived from them.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    type = fields.CharEnumField(TransactionType)
    category = fields.CharEnumField(TransactionCategory)
    # Always non-negative, the sign comes from type
    amount = fields.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(0)])
    description = fields.TextField()
    order_id = fields.UUIDField(null=True)
    items_purchased = fields.TextField(null=True)
    payment_method = fields.CharField(max_length=32, default="CASH")
    created_by = fields.CharField(max_length=64, default="system")
    created_at = fields.DatetimeField()

    class Meta:
        table = "cash_flow_transactions"
        indexes = [
            ("type",),
            ("created_at",),
            ("order_id",),
        ]
