from tortoise import fields, models
from tortoise.validators import MinValueValidator
import uuid


class Stock(models.Model):
    """
    On-hand quantity for one inventory item. Exactly one of addon, ingredient
    or material is set; the one-to-one links keep a single record per item.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    quantity = fields.DecimalField(max_digits=14, decimal_places=3, validators=[MinValueValidator(0)])
    addon = fields.OneToOneField("models.Addon", related_name="stock", null=True, on_delete=fields.CASCADE)
    ingredient = fields.OneToOneField("models.Ingredient", related_name="stock", null=True, on_delete=fields.CASCADE)
    material = fields.OneToOneField("models.Material", related_name="stock", null=True, on_delete=fields.CASCADE)
    updated_at = fields.DatetimeField()

    class Meta:
        table = "stock"
