"""
Configured-unit list.

The collector only scrapes units named in a small JSON file::

    {
      "configuredUnits": ["42", "61", "F"],
      "lastUpdated": "2025-01-02T10:00:00+00:00",
      "updatedBy": "admin",
      "version": 3
    }

A missing file is an empty configuration (logged). A file that exists but
cannot be parsed, or names an invalid unit id, is a :class:`ConfigError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from perfspine.core.errors import ConfigError, ParseError
from perfspine.core.logging import get_logger
from perfspine.core.storage import read_json, write_json_atomic
from perfspine.core.timestamps import utc_now_iso

logger = get_logger(__name__)

UNIT_ID_PATTERN = re.compile(r"^[A-Za-z0-9]+$")


@dataclass
class UnitConfiguration:
    configured_units: list[str] = field(default_factory=list)
    last_updated: str | None = None
    updated_by: str | None = None
    version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "configuredUnits": self.configured_units,
            "lastUpdated": self.last_updated,
            "updatedBy": self.updated_by,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> UnitConfiguration:
        units = payload.get("configuredUnits", [])
        if not isinstance(units, list):
            raise ConfigError("'configuredUnits' must be a list")
        normalized = [str(u).strip() for u in units]
        invalid = [u for u in normalized if not UNIT_ID_PATTERN.match(u)]
        if invalid:
            raise ConfigError(f"Invalid unit ids in configuration: {invalid}")
        return cls(
            configured_units=normalized,
            last_updated=payload.get("lastUpdated"),
            updated_by=payload.get("updatedBy"),
            version=int(payload.get("version", 0)),
        )


class UnitConfigLoader:
    """Loads and saves the unit configuration file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> UnitConfiguration:
        try:
            payload = read_json(self.path)
        except ParseError as e:
            raise ConfigError(
                f"Unit configuration is not valid JSON: {self.path}", cause=e
            ).with_context(path=str(self.path)) from e

        if payload is None:
            logger.warning("unit_config_missing", path=str(self.path))
            return UnitConfiguration()
        if not isinstance(payload, dict):
            raise ConfigError(f"Unit configuration must be a JSON object: {self.path}")

        config = UnitConfiguration.from_dict(payload)
        logger.debug("unit_config_loaded", path=str(self.path), units=len(config.configured_units))
        return config

    def configured_units(self) -> list[str]:
        return self.load().configured_units

    def save(self, units: list[str], updated_by: str = "cli") -> UnitConfiguration:
        """Replace the unit list, bumping the version."""
        current = self.load()
        config = UnitConfiguration.from_dict(
            {
                "configuredUnits": units,
                "lastUpdated": utc_now_iso(),
                "updatedBy": updated_by,
                "version": current.version + 1,
            }
        )
        write_json_atomic(self.path, config.to_dict())
        logger.info("unit_config_saved", path=str(self.path), units=len(units), version=config.version)
        return config


__all__ = ["UnitConfiguration", "UnitConfigLoader", "UNIT_ID_PATTERN"]
