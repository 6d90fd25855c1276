"""Property list schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, TypeAdapter

from tablesync.services.property_service import (
    PropertyEntry,
    TypedPropertyEntry,
    coerce_json_value,
)


class PropertyEntryJson(BaseModel):
    """A property with a loosely-typed JSON value."""

    partition: str = Field(max_length=500)
    aspect: str = Field(max_length=500)
    key: str = Field(max_length=500)
    type: str = Field(max_length=100)
    value: Any = None

    def to_entry(self) -> PropertyEntry:
        return PropertyEntry(
            partition=self.partition,
            aspect=self.aspect,
            key=self.key,
            type=self.type,
            value=coerce_json_value(self.value),
        )

    @classmethod
    def from_typed(cls, entry: TypedPropertyEntry) -> PropertyEntryJson:
        return cls(
            partition=entry.partition,
            aspect=entry.aspect,
            key=entry.key,
            type=entry.type,
            value=entry.value,
        )


PropertyEntryJsonList = TypeAdapter(list[PropertyEntryJson])
