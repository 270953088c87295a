"""
Shared pieces of the account and token document models.

Documents travel as pydantic models inside the service and as plain dicts
through pymongo; ObjectIds stay ObjectIds on the way to the driver and become
strings only when dumped to JSON.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

ModelT = TypeVar("ModelT", bound="MongoBaseModel")


class PyObjectId(ObjectId):
    """BSON ObjectId that Pydantic v2 knows how to validate and serialize."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                cls._serialize, info_arg=True
            ),
        )

    @staticmethod
    def _serialize(v: ObjectId, info: core_schema.SerializationInfo) -> Any:
        # Keep real ObjectIds for pymongo; strings for JSON
        return str(v) if info.mode_is_json() else v

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"Invalid ObjectId: {v!r}")


def to_object_id(value: str | ObjectId) -> Optional[ObjectId]:
    """Coerce *value* to an ObjectId, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class MongoBaseModel(BaseModel):
    """Document model keyed by the Mongo `_id`, exposed as `id`."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def to_mongo(self) -> dict:
        """Dump for pymongo: `_id` key (omitted while unset), enums by value."""
        data = self.model_dump(by_alias=True, exclude_none=False, mode="python")
        data = {k: v.value if isinstance(v, Enum) else v for k, v in data.items()}
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls: type[ModelT], data: Optional[dict]) -> Optional[ModelT]:
        """Validate a raw document; passes a find_one() miss through as None."""
        if data is None:
            return None
        return cls.model_validate(data)
