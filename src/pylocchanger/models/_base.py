"""Base model and timestamp coercion shared by pylocchanger models.

Every persisted model inherits from :class:`LocBaseModel` which
provides:

* ``alias_generator=to_camel`` so snake_case fields serialize to the
  camelCase keys of the stored layout (``captured_at`` → ``capturedAt``).
* ``frozen=True``; records are values and never change after construction.
* A ``model_validator(mode="before")`` that drops explicit ``None`` values
  so field defaults apply to sparse stored payloads.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> datetime:
    """Coerce *value* to a timezone-aware UTC datetime.

    Accepts datetimes (naive values are taken as UTC), epoch numbers in
    seconds **or** milliseconds, numeric strings, and ISO-8601 strings.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        try:
            return value.astimezone(UTC)
        except OverflowError as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    if isinstance(value, bool):
        raise ValueError("timestamp must not be a boolean")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("timestamp must be finite")
        try:
            ts = float(value)
            if abs(ts) >= _MS_THRESHOLD:
                ts /= 1000.0
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError) as exc:
            # pydantic only turns ValueError into a validation error
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    if isinstance(value, str):
        text = value.strip()
        try:
            return parse_timestamp(float(text))
        except ValueError:
            pass
        return parse_timestamp(datetime.fromisoformat(text))
    raise ValueError(f"unsupported timestamp value: {value!r}")


UtcTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces epoch numbers and ISO strings to UTC datetimes."""


class LocBaseModel(BaseModel):
    """Base for immutable pylocchanger value models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_none_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None}
