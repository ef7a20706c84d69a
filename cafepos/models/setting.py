from tortoise import fields, models
import uuid


class Setting(models.Model):
    """Persisted key/value flags (e.g. the one-time migration marker)."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    key = fields.CharField(max_length=128, unique=True)
    value = fields.CharField(max_length=255)

    class Meta:
        table = "settings"
