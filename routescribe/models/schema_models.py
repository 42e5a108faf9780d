"""
Schema Models: what is known about an Eloquent model class.

Produced by a SchemaProvider and shared (never owned) by every
MethodAnalysis that touches the model.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# Relation factory name → relation class basename
RELATION_FACTORIES: dict[str, str] = {
    "hasOne": "HasOne",
    "hasMany": "HasMany",
    "belongsTo": "BelongsTo",
    "belongsToMany": "BelongsToMany",
    "hasOneThrough": "HasOneThrough",
    "hasManyThrough": "HasManyThrough",
    "morphOne": "MorphOne",
    "morphMany": "MorphMany",
    "morphTo": "MorphTo",
    "morphToMany": "MorphToMany",
    "morphedByMany": "MorphToMany",
}

RELATION_TYPES = frozenset(RELATION_FACTORIES.values())

# Relations that serialize as a list of related records
MANY_RELATIONS = frozenset(
    {"HasMany", "BelongsToMany", "HasManyThrough", "MorphMany", "MorphToMany"}
)


class ColumnInfo(BaseModel):
    """A backing-storage column."""

    type: str = "string"
    nullable: bool = False


class RelationInfo(BaseModel):
    """A relation method declared on a model."""

    type: str = Field(..., description="Relation class basename, e.g. 'HasMany'")
    related: str | None = Field(default=None, description="FQCN of the related model")
    foreign_key: str | None = None
    local_key: str | None = None
    owner_key: str | None = None

    @property
    def is_many(self) -> bool:
        return self.type in MANY_RELATIONS


class ModelSchema(BaseModel):
    """Declared fields, relations and columns of a model class."""

    class_name: str = ""
    table: str | None = None
    primary_key: str = "id"
    fillable: list[str] = Field(default_factory=list)
    casts: dict[str, str] = Field(default_factory=dict)
    hidden: list[str] = Field(default_factory=list)
    appends: list[str] = Field(default_factory=list)
    relations: dict[str, RelationInfo] = Field(default_factory=dict)
    columns: dict[str, ColumnInfo] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.table or self.fillable or self.casts or self.relations or self.columns)

    @property
    def short_name(self) -> str:
        return self.class_name.rsplit("\\", 1)[-1]
