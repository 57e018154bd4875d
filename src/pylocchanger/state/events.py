"""Notification payloads and enums exchanged between provider, store and observers."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pylocchanger.models._base import UtcTimestamp, utcnow
from pylocchanger.models.location import LocationRecord


class AuthorizationStatus(StrEnum):
    NOT_DETERMINED = "not_determined"
    RESTRICTED = "restricted"
    DENIED = "denied"
    AUTHORIZED_WHEN_IN_USE = "authorized_when_in_use"
    AUTHORIZED_ALWAYS = "authorized_always"

    @property
    def is_authorized(self) -> bool:
        return self in (AuthorizationStatus.AUTHORIZED_WHEN_IN_USE, AuthorizationStatus.AUTHORIZED_ALWAYS)


class ProviderErrorKind(StrEnum):
    LOCATION_UNKNOWN = "location_unknown"
    DENIED = "denied"
    NETWORK = "network"
    OTHER = "other"


class CurrentState(BaseModel):
    """Point-in-time view of the override state machine."""

    model_config = ConfigDict(frozen=True)

    active: bool = False
    override: LocationRecord | None = None

    @model_validator(mode="after")
    def _override_iff_active(self) -> CurrentState:
        if self.active != (self.override is not None):
            raise ValueError("override must be set exactly when active")
        return self

    @classmethod
    def disabled(cls) -> CurrentState:
        return cls()

    @classmethod
    def overridden(cls, record: LocationRecord) -> CurrentState:
        return cls(active=True, override=record)


class ProviderFailure(BaseModel):
    """A failure pushed by the real-location provider."""

    model_config = ConfigDict(frozen=True)

    kind: ProviderErrorKind = ProviderErrorKind.OTHER
    detail: str = ""
    occurred_at: UtcTimestamp = Field(default_factory=utcnow)

