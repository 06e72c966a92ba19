"""Base model for telemetry API entities.

Every API entity model inherits from :class:`FleetBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` and blank
  strings so the field default is used, and flattens id references
  (``{"device": {"id": "b1"}}`` becomes ``deviceId="b1"``).
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from fleetsync.ingestion.normalize import parse_timestamp, safe_float

FleetTimestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO strings and epoch values to UTC datetimes."""

FleetFloat = Annotated[float | None, BeforeValidator(safe_float)]
"""Annotated type that coerces numeric strings and drops NaN/garbage to ``None``."""


class FleetBaseModel(BaseModel):
    """Base for telemetry API entity models."""

    _ID_REFERENCES: ClassVar[tuple[str, ...]] = ()
    """Keys holding ``{"id": ...}`` references to flatten into ``<key>Id``."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original API entity dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Drop empty values, flatten id references, and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value

        for ref in getattr(cls, "_ID_REFERENCES", ()):
            nested = cleaned.get(ref)
            target = f"{ref}Id"
            if target in cleaned:
                continue
            if isinstance(nested, dict) and nested.get("id"):
                cleaned[target] = str(nested["id"])
            elif isinstance(nested, str):
                cleaned[target] = nested

        # Only auto-stash raw when not explicitly provided (i.e. model_validate
        # from an API dict).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
