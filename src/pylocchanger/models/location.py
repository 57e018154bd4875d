"""Location record and coordinate models."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from pylocchanger.models._base import LocBaseModel, UtcTimestamp, utcnow

#: Name given to points picked by hand on a map.
MANUAL_SELECTION_NAME = "Manual selection"


class Coordinate(LocBaseModel):
    """A WGS84 latitude/longitude pair in decimal degrees."""

    latitude: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)

    def format(self, precision: int = 6) -> str:
        return f"Lat: {self.latitude:.{precision}f}, Lon: {self.longitude:.{precision}f}"


class LocationRecord(LocBaseModel):
    """One named location, as set by the user or reported by the device.

    Records are immutable. ``==`` compares every field; use
    :meth:`same_location` for the name-only identity that history and
    favorites deduplicate on.

    Parameters
    ----------
    latitude : float
        Latitude in degrees, within [-90, 90].
    longitude : float
        Longitude in degrees, within [-180, 180].
    name : str
        Display name; also the record's identity key.
    address : str
        Free-form address line, may be empty.
    captured_at : datetime
        UTC time the record was created. Serialized as ``capturedAt``.
    """

    latitude: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)
    name: str
    address: str = ""
    captured_at: UtcTimestamp = Field(default_factory=utcnow)

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        # name is returned unstripped; identity is byte-equal.
        if not value.strip():
            raise ValueError("name must be non-empty")
        return value

    @classmethod
    def from_coordinate(
        cls,
        coordinate: Coordinate,
        *,
        name: str = MANUAL_SELECTION_NAME,
        address: str | None = None,
        captured_at: datetime | None = None,
    ) -> LocationRecord:
        """Build a record for a bare coordinate.

        The address defaults to the formatted coordinate, which is how hand
        picked map points are labelled.
        """
        return cls(
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            name=name,
            address=coordinate.format() if address is None else address,
            captured_at=captured_at,
        )

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    def same_location(self, other: LocationRecord) -> bool:
        """Whether *other* has the same identity (exact name match)."""
        return self.name == other.name
