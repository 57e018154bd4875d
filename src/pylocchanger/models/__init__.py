"""Data models for pylocchanger."""

from pylocchanger.models._base import LocBaseModel, UtcTimestamp, parse_timestamp
from pylocchanger.models.location import MANUAL_SELECTION_NAME, Coordinate, LocationRecord
from pylocchanger.models.presets import PRESET_LOCATIONS, find_preset

__all__ = [
    "Coordinate",
    "LocBaseModel",
    "LocationRecord",
    "MANUAL_SELECTION_NAME",
    "PRESET_LOCATIONS",
    "UtcTimestamp",
    "find_preset",
    "parse_timestamp",
]
