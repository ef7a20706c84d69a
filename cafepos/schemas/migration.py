from typing import Dict, List

from pydantic import BaseModel, Field


class DataPresence(BaseModel):
    fallback: bool
    transactional: bool


class EntityCount(BaseModel):
    migrated: int = 0
    total: int = 0


class MigrationResult(BaseModel):
    success: bool
    skipped: bool = False
    per_entity_counts: Dict[str, EntityCount] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
