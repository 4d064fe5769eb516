"""
Schema-tolerant decoders for Immich JSON.

Immich responses vary between server versions: fields go missing, come back
as null, or a single-element list arrives as a bare object. All of that is
absorbed here so callers only ever see complete records.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, TypeVar

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)

from immich_bridge.errors import UpstreamShapeError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound="UpstreamModel")


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class UpstreamModel(BaseModel):
    """Base for read-only projections of upstream objects."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    # Whether a bare JSON string is an acceptable encoding
    accepts_scalar: ClassVar[bool] = False

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # null means "absent" everywhere in the Immich API
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @field_validator("*", mode="wrap")
    @classmethod
    def default_on_error(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        # A malformed optional field falls back to its default; required ones still fail
        try:
            return handler(value)
        except ValidationError:
            field = cls.model_fields[info.field_name]
            if field.is_required():
                raise
            logger.debug(f"{cls.__name__}.{info.field_name}: ignoring malformed value {value!r}")
            return field.get_default(call_default_factory=True)

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable dict using the boundary's camelCase names."""
        return self.model_dump(mode="json", by_alias=True)


class AssetType(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    OTHER = "OTHER"


class Album(UpstreamModel):
    id: str = ""
    title: str = Field(default="Untitled", validation_alias=AliasChoices("albumName", "title"))
    asset_count: int = Field(
        default=0,
        validation_alias=AliasChoices("assetCount", "asset_count"),
        serialization_alias="assetCount",
    )
    created_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )
    updated_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("updatedAt", "updated_at"),
        serialization_alias="updatedAt",
    )

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return _parse_timestamp(v)


class Asset(UpstreamModel):
    id: str
    file_name: str = Field(
        default="Unknown",
        validation_alias=AliasChoices("originalFileName", "originalPath", "fileName"),
        serialization_alias="fileName",
    )
    type: AssetType = AssetType.IMAGE
    is_favorite: bool = Field(
        default=False,
        validation_alias=AliasChoices("isFavorite", "is_favorite"),
        serialization_alias="isFavorite",
    )
    file_date: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "fileCreatedAt",
            "localDateTime",
            AliasPath("exifInfo", "dateTimeOriginal"),
            "fileDate",
        ),
        serialization_alias="fileDate",
    )

    @field_validator("id", mode="before")
    @classmethod
    def require_id(cls, v):
        if not isinstance(v, str) or not v:
            raise ValueError("asset id must be a non-empty string")
        return v

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, v):
        if isinstance(v, str) and v.upper() in AssetType.__members__:
            return AssetType(v.upper())
        return AssetType.OTHER

    @field_validator("file_date", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return _parse_timestamp(v)


class Tag(UpstreamModel):
    id: str = ""
    name: str = Field(default="Unknown", validation_alias=AliasChoices("name", "value"))
    value: str = Field(default="", validation_alias=AliasChoices("value", "name"))


class TimeBucket(UpstreamModel):
    """One month of the timeline as listed by Immich."""

    accepts_scalar: ClassVar[bool] = True

    bucket_key: str = Field(
        default="",
        validation_alias=AliasChoices("timeBucket", "bucketKey"),
        serialization_alias="bucketKey",
    )
    count: int | None = None

    @model_validator(mode="before")
    @classmethod
    def from_key(cls, data: Any) -> Any:
        # Older servers list bare bucket keys
        if isinstance(data, str):
            return {"timeBucket": data}
        return data


def decode(model: type[M], raw: Any) -> M:
    """Decode one upstream object, raising UpstreamShapeError if it cannot be."""
    if not (isinstance(raw, dict) or (model.accepts_scalar and isinstance(raw, str))):
        raise UpstreamShapeError(f"Expected an object for {model.__name__}, got {type(raw).__name__}")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise UpstreamShapeError(f"Invalid {model.__name__}: {e.error_count()} error(s)") from e


def decode_list(model: type[M], raw: Any, allow_single: bool = False) -> list[M]:
    """
    Decode a list of upstream objects, discarding entries that do not decode.

    Args:
        model: Model to decode each entry with
        raw: Decoded JSON value
        allow_single: Treat a bare object as a one-element list

    Returns:
        Decoded records in upstream order
    """
    if isinstance(raw, dict):
        if not allow_single or not raw:
            return []
        raw = [raw]
    if not isinstance(raw, list):
        return []

    result: list[M] = []
    for entry in raw:
        try:
            result.append(decode(model, entry))
        except UpstreamShapeError as e:
            logger.debug(f"Skipping upstream entry: {e}")
    return result
