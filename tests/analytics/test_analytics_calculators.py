"""Tests for the individual analytics calculators."""

import pytest

from _support import club_row, default_clubs

from perfspine.analytics.distinguished import compute_distinguished, project_distinguished
from perfspine.analytics.health import assess_clubs, compute_club_health, compute_vulnerable_clubs
from perfspine.analytics.leadership import compute_leadership
from perfspine.analytics.membership import compute_membership, merge_current, trend_direction
from perfspine.analytics.rankings import (
    RankedMetric,
    UnitRankings,
    load_rankings,
    parse_rankings,
    world_percentile,
)
from perfspine.analytics.targets import compute_targets
from perfspine.analytics.year_over_year import compare
from perfspine.core.errors import ParseError
from perfspine.snapshots.clubs import club_records
from perfspine.snapshots.models import UnitSnapshot
from perfspine.snapshots.store import SnapshotStore
from perfspine.timeseries.models import TimeSeriesDataPoint


def records(rows=None):
    return club_records(rows if rows is not None else default_clubs())


class TestRankings:
    """Percentiles and regional ranks."""

    @pytest.mark.parametrize(
        "rank,total,expected",
        [(1, 5, 80.0), (2, 5, 60.0), (5, 5, 0.0), (1, 3, 66.7), (1, 2, 50.0), (0, 5, None), (None, 5, None), (1, 0, None), (1, 1, None)],
    )
    def test_world_percentile(self, rank, total, expected):
        assert world_percentile(rank, total) == expected

    def test_region_ties_break_by_unit_id(self):
        rankings = parse_rankings(
            {
                "rankings": [
                    {"unitId": "B", "region": "1", "clubsRank": 4},
                    {"unitId": "A", "region": "1", "clubsRank": 4},
                    {"unitId": "C", "region": "2", "clubsRank": 1},
                ]
            }
        )
        assert rankings.for_unit("A", RankedMetric.CLUBS).region_rank == 1
        assert rankings.for_unit("B", RankedMetric.CLUBS).region_rank == 2
        assert rankings.for_unit("C", RankedMetric.CLUBS).total_in_region == 1

    def test_unknown_unit(self):
        rankings = parse_rankings({"rankings": [{"unitId": "1", "clubsRank": 1}]})
        ranked = rankings.for_unit("2", RankedMetric.CLUBS)
        assert ranked.world_rank is None
        assert ranked.world_percentile is None
        assert ranked.total_units == 0
        assert "2" not in rankings

    def test_invalid_ranks_are_ignored(self):
        rankings = parse_rankings({"rankings": [{"unitId": "1", "clubsRank": 0, "paymentsRank": "x"}]})
        clubs = rankings.for_unit("1", RankedMetric.CLUBS)
        assert clubs.world_rank is None
        assert clubs.world_percentile is None
        assert rankings.for_unit("1", RankedMetric.PAYMENTS).world_rank is None

    def test_single_ranked_unit_has_no_percentile(self):
        rankings = parse_rankings({"rankings": [{"unitId": "1", "clubsRank": 1}]})
        ranked = rankings.for_unit("1", RankedMetric.CLUBS)
        assert ranked.world_rank == 1
        assert ranked.world_percentile is None
        assert ranked.total_units == 1

    def test_metadata_total_overrides_entry_count(self):
        rankings = parse_rankings(
            {
                "metadata": {"totalUnits": 100},
                "rankings": [{"unitId": "1", "clubsRank": 5}, {"unitId": "2", "clubsRank": 9}],
            }
        )
        ranked = rankings.for_unit("1", RankedMetric.CLUBS)
        assert ranked.total_units == 100
        assert ranked.world_percentile == 95.0

    @pytest.mark.parametrize("metadata", [{"totalUnits": "100"}, {"totalUnits": True}, {"totalUnits": -1}, "x"])
    def test_unusable_metadata_total_falls_back(self, metadata):
        rankings = parse_rankings(
            {"metadata": metadata, "rankings": [{"unitId": "1", "clubsRank": 1}, {"unitId": "2", "clubsRank": 2}]}
        )
        assert rankings.total_units == 2

    def test_unknown_region_has_no_region_rank(self):
        rankings = parse_rankings(
            {
                "rankings": [
                    {"unitId": "1", "region": "Unknown", "clubsRank": 1},
                    {"unitId": "2", "region": "Unknown", "clubsRank": 2},
                ]
            }
        )
        ranked = rankings.for_unit("2", RankedMetric.CLUBS)
        assert ranked.region is None
        assert ranked.region_rank is None
        assert ranked.total_in_region == 0
        assert ranked.world_percentile == 0.0

    @pytest.mark.parametrize("payload", [[], {"rankings": "x"}, {"rankings": [{"region": "1"}]}])
    def test_parse_errors(self, payload):
        with pytest.raises(ParseError):
            parse_rankings(payload)

    def test_load_missing_returns_none(self, cache_dir):
        assert load_rankings(SnapshotStore(cache_dir), "2025-01-10") is None

    def test_all_metrics(self):
        rankings = UnitRankings([])
        assert set(rankings.all_metrics("1")) == {"clubs", "payments", "distinguished"}


class TestHealthArtifacts:
    def test_club_health(self):
        data = compute_club_health(assess_clubs(records(), 7), 7)
        assert data["programMonth"] == 7
        assert data["averageHealthScore"] == 0.5
        assert [c["status"] for c in data["clubs"]] == ["thriving", "vulnerable", "intervention-required"]

    def test_vulnerable_clubs(self):
        data = compute_vulnerable_clubs(assess_clubs(records(), 7))
        assert data["totalVulnerable"] == 1
        assert data["totalInterventionRequired"] == 1
        assert data["vulnerableClubs"][0]["clubId"] == "1002"
        assert data["interventionRequiredClubs"][0]["riskFactors"]


class TestLeadership:
    def test_division_scores_and_ranking(self):
        data = compute_leadership(records())
        division_a, division_b = data["divisions"]
        assert division_a["divisionId"] == "A"
        assert division_a["rank"] == 1
        assert division_a["overallScore"] == 88.0
        assert division_a["isBestPractice"] is True
        assert division_b["overallScore"] == 11.5
        assert data["bestPracticeDivisions"] == ["A"]

    def test_area_ids_combine_division_and_area(self):
        data = compute_leadership(records())
        assert {a["areaId"] for a in data["areas"]} == {"A1", "B1", "B2"}

    def test_empty(self):
        assert compute_leadership([])["divisions"] == []


class TestDistinguished:
    def test_projection(self):
        assert project_distinguished(3, 6, 20) == 6
        assert project_distinguished(10, 3, 20) == 20
        assert project_distinguished(1, 7, 3) == 1

    def test_compute(self):
        rows = default_clubs() + [club_row("1004", goals=4, status="")]
        data = compute_distinguished(records(rows), 7)
        assert data["counts"]["select"] == 1
        assert data["counts"]["total"] == 1
        assert data["totalClubs"] == 4
        assert data["percentDistinguished"] == 25.0
        assert [c["clubId"] for c in data["closeToDistinguished"]] == ["1004"]


class TestTargets:
    def _snapshot(self, unit_rows=None):
        return UnitSnapshot(
            unit_id="42",
            snapshot_date="2025-01-10",
            collection_date="2025-01-10",
            created_at="",
            data={
                "clubPerformance": default_clubs(),
                "unitPerformance": unit_rows or [],
                "totals": {
                    "totalClubs": 3,
                    "paidClubs": 3,
                    "membershipBase": 45,
                    "totalPayments": 54,
                    "distinguishedClubs": 1,
                },
            },
        )

    def test_targets_without_rankings(self):
        data = compute_targets(self._snapshot(), None)
        assert data["membershipTarget"] == 48
        assert data["distinguishedTarget"] == 2
        assert data["clubGrowthTarget"] == 1
        assert data["paidClubs"]["target"] == 4
        assert data["paidClubs"]["progress"] == 0.75
        assert data["paidClubs"]["projectedAchievement"] is False
        assert data["membershipPayments"]["projectedAchievement"] is True
        assert data["distinguishedClubs"]["rankings"]["worldRank"] is None

    def test_paid_club_base_from_unit_report(self):
        data = compute_targets(self._snapshot([{"Paid Club Base": "100"}]), None)
        assert data["paidClubs"]["base"] == 100
        assert data["clubGrowthTarget"] == 2
        assert data["paidClubs"]["target"] == 102


class TestMembershipTrend:
    def _point(self, date, membership, payments=0):
        return TimeSeriesDataPoint(date=date, snapshot_id=date, membership=membership, payments=payments)

    @pytest.mark.parametrize(
        "start,end,expected",
        [(100, 103, "up"), (100, 102, "flat"), (100, 97, "down"), (0, 5, "up"), (0, 0, "flat")],
    )
    def test_trend_direction(self, start, end, expected):
        assert trend_direction(start, end) == expected

    def test_merge_replaces_same_date(self):
        history = [self._point("2024-10-31", 10), self._point("2024-12-31", 11), self._point("2025-01-31", 12)]
        merged = merge_current(history, self._point("2024-12-31", 20))
        assert [(p.date, p.membership) for p in merged] == [("2024-10-31", 10), ("2024-12-31", 20)]

    def test_empty_history(self):
        data = compute_membership([], 45)
        assert data["trendDirection"] == "flat"
        assert data["membershipTrend"] == []

    def test_change_against_first_point_without_base(self):
        data = compute_membership([self._point("2024-08-31", 40, 5), self._point("2024-09-30", 38, 9)], 0)
        assert data["membershipChange"] == -2
        assert data["trendDirection"] == "down"
        assert data["paymentsDirection"] == "up"
        assert data["low"] == 38


class TestYearOverYearCompare:
    def test_compare(self):
        assert compare(110, 100) == {"current": 110, "previous": 100, "change": 10, "percentageChange": 10.0}

    def test_compare_from_zero(self):
        assert compare(5, 0)["percentageChange"] is None
