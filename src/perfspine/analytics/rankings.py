"""
Cross-unit rankings.

The rankings file is produced outside perfspine and dropped next to the
snapshots it describes::

    snapshots/{date}/all-units-rankings.json
    {"metadata": {"totalUnits": 126},
     "rankings": [{"unitId": "42", "region": "7", "clubsRank": 3,
                   "paymentsRank": 1, "distinguishedRank": 12}, ...]}

It is optional. When it is missing or unreadable every per-metric ranking
is reported with null rank and percentile.

Percentile is ``((total - rank) / total) * 100`` rounded to one decimal,
so rank 1 of 5 is 80.0 and rank 5 of 5 is 0.0. ``total`` is
``metadata.totalUnits`` when present, else the number of entries. A unit
absent from the file reports ``totalUnits`` 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from perfspine.core.errors import ParseError
from perfspine.core.logging import get_logger
from perfspine.core.storage import read_json
from perfspine.snapshots.store import SnapshotStore

logger = get_logger(__name__)


class RankedMetric(str, Enum):
    CLUBS = "clubs"
    PAYMENTS = "payments"
    DISTINGUISHED = "distinguished"

    @property
    def field_name(self) -> str:
        return f"{self.value}Rank"


@dataclass(frozen=True)
class RankingEntry:
    unit_id: str
    region: str | None
    ranks: dict[RankedMetric, int | None]

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> RankingEntry:
        ranks: dict[RankedMetric, int | None] = {}
        for metric in RankedMetric:
            value = payload.get(metric.field_name)
            ranks[metric] = int(value) if isinstance(value, (int, float)) and value > 0 else None
        region = payload.get("region")
        return cls(
            unit_id=str(payload["unitId"]),
            region=str(region) if region not in (None, "", "Unknown") else None,
            ranks=ranks,
        )


@dataclass
class MetricRankings:
    """One unit's standing on one metric."""

    world_rank: int | None = None
    world_percentile: float | None = None
    region_rank: int | None = None
    total_units: int = 0
    total_in_region: int = 0
    region: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "worldRank": self.world_rank,
            "worldPercentile": self.world_percentile,
            "regionRank": self.region_rank,
            "totalUnits": self.total_units,
            "totalInRegion": self.total_in_region,
            "region": self.region,
        }


def world_percentile(rank: int | None, total: int) -> float | None:
    """``((total - rank) / total) * 100`` to one decimal.

    None for a missing rank or a field of fewer than two units, where a
    percentile says nothing.
    """
    if rank is None or rank <= 0 or total <= 1:
        return None
    return round(((total - rank) / total) * 100, 1)


@dataclass
class UnitRankings:
    """Every entry of one rankings file, indexed for per-unit lookups."""

    entries: list[RankingEntry] = field(default_factory=list)
    declared_total: int | None = None

    def __post_init__(self) -> None:
        self._by_unit = {e.unit_id: e for e in self.entries}

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, unit_id: str) -> bool:
        return unit_id in self._by_unit

    @property
    def total_units(self) -> int:
        """``metadata.totalUnits`` from the file, else the number of entries."""
        if self.declared_total is not None:
            return self.declared_total
        return len(self.entries)

    def for_unit(self, unit_id: str, metric: RankedMetric) -> MetricRankings:
        entry = self._by_unit.get(unit_id)
        if entry is None:
            return MetricRankings()

        rank = entry.ranks[metric]
        result = MetricRankings(
            world_rank=rank,
            world_percentile=world_percentile(rank, self.total_units),
            total_units=self.total_units,
            region=entry.region,
        )
        if entry.region is None:
            return result

        peers = sorted(
            (e for e in self.entries if e.region == entry.region and e.ranks[metric] is not None),
            key=lambda e: (e.ranks[metric], e.unit_id),
        )
        result.total_in_region = len(peers)
        if rank is not None:
            for position, peer in enumerate(peers, start=1):
                if peer.unit_id == unit_id:
                    result.region_rank = position
                    break
        return result

    def all_metrics(self, unit_id: str) -> dict[str, MetricRankings]:
        return {metric.value: self.for_unit(unit_id, metric) for metric in RankedMetric}


def parse_rankings(payload: Any) -> UnitRankings:
    if not isinstance(payload, dict) or not isinstance(payload.get("rankings"), list):
        raise ParseError("Rankings file must be an object with a 'rankings' list")
    entries = []
    for item in payload["rankings"]:
        if not isinstance(item, dict) or "unitId" not in item:
            raise ParseError("Rankings entry is missing 'unitId'")
        entries.append(RankingEntry.from_dict(item))

    metadata = payload.get("metadata")
    declared = metadata.get("totalUnits") if isinstance(metadata, dict) else None
    if not isinstance(declared, int) or isinstance(declared, bool) or declared < 0:
        declared = None
    return UnitRankings(entries, declared_total=declared)


def load_rankings(store: SnapshotStore, snapshot_date: str) -> UnitRankings | None:
    """Read the rankings for ``snapshot_date``; None (with a warning) if unusable."""
    path: Path = store.rankings_path(snapshot_date)
    try:
        payload = read_json(path)
        if payload is None:
            logger.warning("rankings_unavailable", snapshot_date=snapshot_date, path=str(path))
            return None
        rankings = parse_rankings(payload)
    except ParseError as e:
        logger.warning("rankings_unreadable", snapshot_date=snapshot_date, error=str(e))
        return None

    logger.info("rankings_loaded", snapshot_date=snapshot_date, units=len(rankings))
    return rankings


__all__ = [
    "RankedMetric",
    "RankingEntry",
    "MetricRankings",
    "UnitRankings",
    "world_percentile",
    "parse_rankings",
    "load_rankings",
]
