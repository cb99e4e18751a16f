"""Application configuration via pydantic-settings."""

from __future__ import annotations

import logging
import socket
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Replica readiness API configuration.

    Loaded from environment variables with the ``READYZ_`` prefix.
    """

    model_config = {"env_prefix": "READYZ_"}

    # -- Storage -------------------------------------------------------------
    db_path: Path = Path("/var/lib/replica-readiness/state.db")

    # -- Readiness -----------------------------------------------------------
    readiness_timeout_s: float = 5.0
    request_timeout_s: float | None = None  # server-wide request budget
    honor_envoy_timeout: bool = True

    # -- Entitlements --------------------------------------------------------
    license_file: Path | None = None
    watcher_debounce_ms: int = 500

    # -- Replicas ------------------------------------------------------------
    replica_id: str = ""  # empty -> host name
    heartbeat_interval_s: float = 10.0
    replica_stale_after_s: float = 30.0

    # -- Auth ----------------------------------------------------------------
    bearer_tokens_file: Path | None = None
    bearer_tokens: str = ""  # comma-separated fallback

    # -- Misc ----------------------------------------------------------------
    log_level: str = "INFO"

    # -- Derived (computed at startup) ---------------------------------------
    _resolved_tokens: set[str] | None = None

    def resolve_tokens(self) -> set[str]:
        """Load bearer tokens from file (preferred) or env fallback."""
        if self._resolved_tokens is not None:
            return self._resolved_tokens

        tokens: set[str] = set()

        if self.bearer_tokens_file is not None:
            try:
                text = self.bearer_tokens_file.read_text(encoding="utf-8")
                for line in text.splitlines():
                    stripped = line.strip()
                    if stripped and not stripped.startswith("#"):
                        tokens.add(stripped)
                if tokens:
                    logger.info(
                        "Loaded %d token(s) from %s",
                        len(tokens),
                        self.bearer_tokens_file,
                    )
                    self._resolved_tokens = tokens
                    return tokens
            except FileNotFoundError:
                logger.warning(
                    "Token file %s not found, falling back to env",
                    self.bearer_tokens_file,
                )
            except OSError:
                logger.exception("Failed to read token file %s", self.bearer_tokens_file)

        if self.bearer_tokens:
            for t in self.bearer_tokens.split(","):
                stripped = t.strip()
                if stripped:
                    tokens.add(stripped)
            if tokens:
                logger.info("Loaded %d token(s) from READYZ_BEARER_TOKENS env", len(tokens))

        self._resolved_tokens = tokens
        return tokens

    def resolve_replica_id(self) -> str:
        """Return the configured replica ID, or the host name when unset."""
        return self.replica_id or socket.gethostname()

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("readiness_timeout_s", "heartbeat_interval_s", "replica_stale_after_s")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def _positive_or_unset(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("must be greater than zero")
        return v
