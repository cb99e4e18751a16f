"""Entitlement and license models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator


class License(BaseModel):
    """A license as stored in the JSON license file."""

    license_id: str
    account: str = ""
    expires_at: datetime | None = None
    high_availability: bool = False

    @field_validator("license_id")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("license_id must not be empty")
        return v


class FeatureEntitlement(BaseModel):
    entitled: bool
    enabled: bool
    actual: int | None = None


class EntitlementsResponse(BaseModel):
    hasLicense: bool
    licenseId: str | None
    expiresAt: datetime | None
    replicas: int
    features: dict[str, FeatureEntitlement]
    errors: list[str]
    warnings: list[str]
    refreshedAt: datetime | None
