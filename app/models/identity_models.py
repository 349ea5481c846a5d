"""NAPWATCH — Identity Models.

The canonical identity record and the raw data platforms publish about it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Address(BaseModel):
    """Structured postal address."""

    street: str = ""
    city: str = ""
    region: str = Field(default="", validation_alias=AliasChoices("region", "state"))
    postal_code: str = Field(
        default="", validation_alias=AliasChoices("postal_code", "zip", "postalCode")
    )
    country: str = ""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


ADDRESS_COMPONENTS = ("street", "city", "region", "postal_code", "country")


class MasterIdentityRecord(BaseModel):
    """The single authoritative copy of the organization's identity data."""

    name: str
    address: Address
    phone: str
    email: Optional[str] = None
    website: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class PlatformTarget(BaseModel):
    """An external platform the engine is configured to audit."""

    name: str = Field(min_length=1)
    endpoint: str = ""
    """URL or provider-specific descriptor. Empty means provider default."""


class RawSnapshot(BaseModel):
    """Identity data as currently published by one platform."""

    platform: str = ""
    url: str = ""
    name: str = ""
    address: Address = Address()
    phone: str = ""
    email: Optional[str] = None
    website: str = ""
    verified: bool = False
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        validation_alias=AliasChoices("last_updated", "lastUpdated"),
    )

    model_config = ConfigDict(populate_by_name=True)


class FailureReason(str, Enum):
    """Why a platform snapshot could not be retrieved."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    NOT_FOUND = "not_found"
    PARSE_ERROR = "parse_error"


class FetchFailure(BaseModel):
    """Typed failure returned by a provider instead of raising."""

    platform: str
    reason: FailureReason
    message: str = ""
    attempts: int = 1
