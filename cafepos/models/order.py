from enum import Enum
from tortoise import fields, models
from tortoise.validators import MinValueValidator
import uuid


class OrderType(str, Enum):
    DINE_IN = "DINE_IN"
    TAKE_OUT = "TAKE_OUT"


class OrderStatus(str, Enum):
    QUEUING = "QUEUING"  # Initial state after a successful commit
    SERVED = "SERVED"
    CANCELLED = "CANCELLED"


class Order(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    total = fields.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(0)])
    paid = fields.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(0)])
    change = fields.DecimalField(max_digits=14, decimal_places=2, source_field="change_amount", validators=[MinValueValidator(0)])
    order_type = fields.CharEnumField(OrderType, default=OrderType.DINE_IN)
    order_status = fields.CharEnumField(OrderStatus, default=OrderStatus.QUEUING)
    # Denormalized snapshot of the ordered items as priced at commit time
    items = fields.JSONField()
    created_at = fields.DatetimeField()

    class Meta:
        table = "orders"
        indexes = [
            ("order_status",),           # Status-based filtering
            ("created_at",),             # Time-based queries
        ]
