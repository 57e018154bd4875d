"""Built-in landmark catalog offered as seed data for location pickers."""

from __future__ import annotations

from datetime import UTC, datetime

from pylocchanger.models.location import LocationRecord

# Fixed so the catalog compares equal across processes.
_CATALOG_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


def _preset(name: str, latitude: float, longitude: float, address: str) -> LocationRecord:
    return LocationRecord(
        latitude=latitude,
        longitude=longitude,
        name=name,
        address=address,
        captured_at=_CATALOG_EPOCH,
    )


PRESET_LOCATIONS: tuple[LocationRecord, ...] = (
    _preset("Tiananmen Square", 39.9042, 116.4074, "Tiananmen Square, Dongcheng District, Beijing"),
    _preset("The Bund", 31.2304, 121.4737, "Zhongshan East 1st Road, Huangpu District, Shanghai"),
    _preset("Victoria Harbour", 22.3193, 114.1694, "Central, Hong Kong SAR"),
    _preset("Giant Wild Goose Pagoda", 34.3416, 108.9398, "Yanta District, Xi'an, Shaanxi"),
    _preset("West Lake", 30.2741, 120.1551, "Xihu District, Hangzhou, Zhejiang"),
    _preset("Times Square", 40.7589, -73.9851, "Manhattan, New York"),
    _preset("Eiffel Tower", 48.8584, 2.2945, "Paris, France"),
    _preset("Tokyo Tower", 35.6762, 139.6503, "Minato, Tokyo, Japan"),
)


def find_preset(name: str) -> LocationRecord | None:
    """Return the preset whose name matches exactly, if any."""
    for record in PRESET_LOCATIONS:
        if record.name == name:
            return record
    return None
