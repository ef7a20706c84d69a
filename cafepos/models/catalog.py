from enum import Enum
from tortoise import fields, models
from tortoise.validators import MinValueValidator
import uuid


class ProductCategory(str, Enum):
    INSIDE_MEALS = "InsideMeals"
    OUTSIDE_SNACKS = "OutsideSnacks"
    INSIDE_BEVERAGES = "InsideBeverages"


class Flavor(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    # Case-folded copy of name; the unique index is the dedup guard
    name_key = fields.CharField(max_length=255, unique=True)
    created_at = fields.DatetimeField()

    class Meta:
        table = "flavors"


class Material(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    name_key = fields.CharField(max_length=255, unique=True)
    is_package = fields.BooleanField(default=False)
    package_price = fields.DecimalField(max_digits=12, decimal_places=2, null=True, validators=[MinValueValidator(0)])
    units_per_package = fields.DecimalField(max_digits=14, decimal_places=3, null=True, validators=[MinValueValidator(0)])
    price_per_piece = fields.DecimalField(max_digits=12, decimal_places=4, validators=[MinValueValidator(0)])
    created_at = fields.DatetimeField()

    class Meta:
        table = "materials"


class Ingredient(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    name_key = fields.CharField(max_length=255, unique=True)
    measurement_unit = fields.CharField(max_length=32)
    price_per_purchase = fields.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    units_per_purchase = fields.DecimalField(max_digits=14, decimal_places=3, validators=[MinValueValidator(0)])
    price_per_unit = fields.DecimalField(max_digits=12, decimal_places=4, validators=[MinValueValidator(0)])
    created_at = fields.DatetimeField()

    class Meta:
        table = "ingredients"


class Addon(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    name_key = fields.CharField(max_length=255, unique=True)
    price = fields.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    created_at = fields.DatetimeField()

    class Meta:
        table = "addons"


class Product(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    name_key = fields.CharField(max_length=255, unique=True)
    category = fields.CharEnumField(ProductCategory, default=ProductCategory.INSIDE_BEVERAGES)
    image_url = fields.CharField(max_length=1024, null=True)
    created_at = fields.DatetimeField()

    class Meta:
        table = "products"


class ProductFlavor(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    product = fields.ForeignKeyField("models.Product", related_name="flavor_links", on_delete=fields.CASCADE)
    flavor = fields.ForeignKeyField("models.Flavor", related_name="product_links", on_delete=fields.CASCADE)

    class Meta:
        table = "product_flavors"
        unique_together = (("product", "flavor"),)


class Size(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    product = fields.ForeignKeyField("models.Product", related_name="sizes", on_delete=fields.CASCADE)
    name = fields.CharField(max_length=255)
    price = fields.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    created_at = fields.DatetimeField()

    class Meta:
        table = "sizes"
        unique_together = (("product", "name"),)
        indexes = [
            ("product_id",),  # Sizes of a product
        ]


class SizeMaterial(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    size = fields.ForeignKeyField("models.Size", related_name="materials", on_delete=fields.CASCADE)
    material = fields.ForeignKeyField("models.Material", related_name="size_links", on_delete=fields.CASCADE)
    quantity = fields.DecimalField(max_digits=14, decimal_places=3, validators=[MinValueValidator(0)])

    class Meta:
        table = "size_materials"


class SizeIngredient(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    size = fields.ForeignKeyField("models.Size", related_name="ingredients", on_delete=fields.CASCADE)
    ingredient = fields.ForeignKeyField("models.Ingredient", related_name="size_links", on_delete=fields.CASCADE)
    quantity = fields.DecimalField(max_digits=14, decimal_places=3, validators=[MinValueValidator(0)])

    class Meta:
        table = "size_ingredients"
