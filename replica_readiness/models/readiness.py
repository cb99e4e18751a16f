"""Readiness verdicts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

DATABASE_PING_FAILED = "database ping failed"
ENTITLEMENT_ERROR = "entitlement error"


@dataclass(frozen=True)
class Ready:
    """Both dependency checks passed."""

    ready: ClassVar[bool] = True


@dataclass(frozen=True)
class NotReady:
    """A dependency check failed; ``reason`` is returned verbatim to the prober."""

    reason: str
    ready: ClassVar[bool] = False


ReadinessVerdict = Union[Ready, NotReady]
