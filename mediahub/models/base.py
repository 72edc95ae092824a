"""
Base models for decoding third-party backend payloads.

Backends evolve independently of this client, so decoding is tolerant per field:
an optional field that is missing or malformed falls back to its default (the
explicit "unknown" value) instead of failing the whole payload. Only fields
declared without a default are critical and may fail a decode. A list field keeps
the items that decode and drops the ones that do not.
"""

import logging
import types
from typing import Any, Union, get_args, get_origin

from pydantic import (
    BaseModel,
    ConfigDict,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

log = logging.getLogger(__name__)


def list_item_type(annotation: Any) -> Any | None:
    """Returns ``X`` for ``list[X]`` or ``list[X] | None``, else None."""
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType):
        for arg in get_args(annotation):
            item_type = list_item_type(arg)
            if item_type is not None:
                return item_type
        return None
    if origin is list:
        args = get_args(annotation)
        return args[0] if args else None
    return None


def decode_items(items: list, item_type: Any, owner: str) -> list:
    """Validates each item on its own and drops the ones that fail."""
    adapter = TypeAdapter(item_type)
    kept = []
    for item in items:
        try:
            kept.append(adapter.validate_python(item))
        except ValidationError:
            log.debug(f"{owner}: dropping undecodable item.")
    return kept


class TolerantModel(BaseModel):
    """A payload model whose non-critical fields degrade to their defaults."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="wrap")
    @classmethod
    def _degrade_invalid_optional(
        cls, value: Any, handler: Any, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            field = cls.model_fields[info.field_name]
            item_type = list_item_type(field.annotation)
            if isinstance(value, list) and item_type is not None:
                return decode_items(
                    value, item_type, f"{cls.__name__}.{info.field_name}"
                )
            if field.is_required():
                raise
            log.debug(
                f"{cls.__name__}.{info.field_name}: unexpected value {value!r}, "
                "using default."
            )
            return field.get_default(call_default_factory=True)


class CamelModel(TolerantModel):
    """Tolerant model for the camelCase JSON used by Overseerr, Radarr and Sonarr."""

    model_config = ConfigDict(alias_generator=to_camel)
