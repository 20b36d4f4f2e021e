"""Environment-driven settings for perfspine.

Settings are read once (by the CLI or by an embedding application) and then
passed explicitly into each service constructor. Nothing in the library
reads the environment on its own.

Environment variables use the ``PERFSPINE_`` prefix::

    PERFSPINE_CACHE_DIR=/var/lib/perfspine
    PERFSPINE_FAILURE_THRESHOLD=3
    PERFSPINE_LOG_LEVEL=DEBUG

Examples:
    >>> from perfspine.core.settings import PerfSpineSettings
    >>> settings = PerfSpineSettings(cache_dir="/tmp/cache")
    >>> settings.resolved_unit_config_path
    PosixPath('/tmp/cache/config/units.json')
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PerfSpineSettings(BaseSettings):
    """Settings shared by the collector, transform and analytics stages.

    Fields
    ──────
    cache_dir          : Root of the cache directory layout
    unit_config_path   : JSON file listing configured units (default under cache_dir)
    log_level          : Structlog log level
    json_logs          : Force JSON (True) or console (False) log output
    failure_threshold  : Consecutive failures before the breaker opens
    recovery_timeout   : Seconds the breaker stays open
    max_retries        : Retries after the first attempt of a fetch
    base_delay         : First backoff delay in seconds
    max_delay          : Backoff cap in seconds
    backoff_multiplier : Exponential growth factor
    """

    model_config = SettingsConfigDict(
        env_prefix="PERFSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    cache_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "cache",
        description="Root of the snapshot cache",
    )
    unit_config_path: Path | None = None

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Resilience ───────────────────────────────────────────────
    failure_threshold: int = Field(default=5, ge=1)
    recovery_timeout: float = Field(default=300.0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=5.0, ge=0)
    max_delay: float = Field(default=60.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)

    @property
    def resolved_unit_config_path(self) -> Path:
        """Unit configuration path, defaulting to ``{cache_dir}/config/units.json``."""
        if self.unit_config_path is not None:
            return self.unit_config_path
        return self.cache_dir / "config" / "units.json"


__all__ = ["PerfSpineSettings"]
