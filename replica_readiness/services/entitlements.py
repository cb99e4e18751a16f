"""In-memory entitlement state derived from the license file and replica count."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from replica_readiness.models.entitlements import (
    EntitlementsResponse,
    FeatureEntitlement,
    License,
)

logger = logging.getLogger(__name__)

HIGH_AVAILABILITY = "high_availability"

_EXPIRY_WARNING_WINDOW = timedelta(days=30)


class LicenseError(ValueError):
    """The license file exists but cannot be used."""


class EntitlementTracker:
    """Holds the current license and the entitlement errors/warnings it implies.

    ``has_errors()`` is a plain attribute read so the readiness probe can call
    it on every request. Errors and warnings are replaced wholesale by
    ``refresh()``; readers never observe a half-computed state.
    """

    def __init__(self, license_path: Path | None = None):
        self._path = license_path.resolve() if license_path is not None else None
        self._license: License | None = None
        self._replicas = 1
        self._errors: tuple[str, ...] = ()
        self._warnings: tuple[str, ...] = ()
        self._ha_entitled = False
        self._refreshed_at: datetime | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def license(self) -> License | None:
        return self._license

    @property
    def errors(self) -> tuple[str, ...]:
        return self._errors

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._warnings

    def has_errors(self) -> bool:
        return bool(self._errors)

    def load(self) -> License | None:
        """(Re)load the license file.

        A missing file (or no configured path) means "no license". A file that
        cannot be read or parsed raises LicenseError and keeps the previous
        license in place.
        """
        if self._path is None:
            self._license = None
            return None

        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            if self._license is not None:
                logger.warning("License file %s removed, running unlicensed", self._path)
            self._license = None
            return None
        except OSError as exc:
            raise LicenseError(f"Failed to read license file {self._path}: {exc}") from exc

        try:
            lic = License.model_validate_json(text)
        except PydanticValidationError as exc:
            raise LicenseError(f"Invalid license file {self._path}: {exc.error_count()} error(s)") from exc

        self._license = lic
        logger.info("Loaded license %s (account=%r)", lic.license_id, lic.account)
        return lic

    def refresh(self, replica_count: int | None = None, now: datetime | None = None) -> None:
        """Recompute errors and warnings.

        ``replica_count`` is the number of active replicas; when omitted the
        last known count is reused.
        """
        if replica_count is not None:
            self._replicas = max(replica_count, 1)
        if now is None:
            now = datetime.now(timezone.utc)

        errors: list[str] = []
        warnings: list[str] = []

        lic = self._license
        if lic is not None and lic.expires_at is not None:
            expires_at = _as_utc(lic.expires_at)
            if expires_at <= now:
                warnings.append(
                    f"License {lic.license_id} expired at {expires_at.isoformat()}; "
                    "enterprise features are disabled."
                )
                lic = None
            elif expires_at - now <= _EXPIRY_WARNING_WINDOW:
                days = (expires_at - now).days
                warnings.append(f"License {lic.license_id} expires in {days} day(s).")

        ha_entitled = lic is not None and lic.high_availability
        if self._replicas > 1 and not ha_entitled:
            errors.append(
                f"You have {self._replicas} replicas but high availability is not "
                "included in your license. Requests may fail intermittently; run a "
                "single replica or add a high availability license."
            )

        if errors != list(self._errors):
            for msg in errors:
                logger.warning("Entitlement error: %s", msg)
            if not errors and self._errors:
                logger.info("Entitlement errors cleared")

        self._errors = tuple(errors)
        self._warnings = tuple(warnings)
        self._ha_entitled = ha_entitled
        self._refreshed_at = now

    def snapshot(self) -> EntitlementsResponse:
        """Current state as an API response."""
        lic = self._license
        return EntitlementsResponse(
            hasLicense=lic is not None,
            licenseId=lic.license_id if lic else None,
            expiresAt=lic.expires_at if lic else None,
            replicas=self._replicas,
            features={
                HIGH_AVAILABILITY: FeatureEntitlement(
                    entitled=self._ha_entitled,
                    enabled=self._replicas > 1,
                    actual=self._replicas,
                ),
            },
            errors=list(self._errors),
            warnings=list(self._warnings),
            refreshedAt=self._refreshed_at,
        )


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps in the license file as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
