"""Device (tracked vehicle) model."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from fleetsync.ingestion.normalize import safe_str
from fleetsync.models._base import FleetBaseModel


class Device(FleetBaseModel):
    """A tracked device returned by ``Get(typeName="Device")``.

    Only ``id`` takes part in synchronization; ``name`` and ``vin`` label
    the output rows.
    """

    id: str
    """Opaque device id (e.g. ``"b12"``)."""
    name: str | None = None
    """User-defined device name."""
    vin: str | None = Field(
        default=None,
        validation_alias=AliasChoices("vehicleIdentificationNumber", "vin"),
    )
    """Vehicle Identification Number, when the device reports one."""

    @field_validator("id", mode="before")
    @classmethod
    def _id_non_empty(cls, value: object) -> str:
        text = safe_str(value)
        if text is None:
            raise ValueError("device id must be non-empty")
        return text

    @field_validator("name", "vin", mode="before")
    @classmethod
    def _coerce_label(cls, value: object) -> str | None:
        return safe_str(value)

    @property
    def label(self) -> str:
        """Human-readable name for logs."""
        return self.name or self.vin or self.id
