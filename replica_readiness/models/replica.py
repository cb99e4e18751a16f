"""Replica registry models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ReplicaRecord(BaseModel):
    id: str
    hostname: str
    startedAt: datetime
    lastSeenAt: datetime
