"""Tests for club row normalization and the CSV statistics builder."""

import pytest

from _support import club_row, to_csv, write_raw_unit

from perfspine.core.errors import SourceNotFoundError
from perfspine.snapshots.builder import CsvStatisticsBuilder, read_csv_rows
from perfspine.snapshots.clubs import (
    ClubRecord,
    DistinguishedLevel,
    HealthStatus,
    dcp_checkpoint,
    parse_int,
)


class TestParseInt:
    @pytest.mark.parametrize(
        "raw,expected",
        [("1,234", 1234), (" 12 ", 12), ("", 0), (None, 0), ("n/a", 0), (7, 7), ("3.0", 3)],
    )
    def test_values(self, raw, expected):
        assert parse_int(raw) == expected


class TestClubRecord:
    """Club-level business rules."""

    def test_payments_sum_renewals_and_new_members(self):
        record = ClubRecord.from_row(club_row("1", oct_ren=10, apr_ren=4, new=2))
        assert record.payments == 16

    def test_net_growth(self):
        record = ClubRecord.from_row(club_row("1", members=15, base=10))
        assert record.net_growth == 5
        assert record.meets_membership_requirement is True

    @pytest.mark.parametrize(
        "status,expected",
        [
            ("Smedley Distinguished", DistinguishedLevel.SMEDLEY),
            ("President's Distinguished", DistinguishedLevel.PRESIDENTS),
            ("Select Distinguished", DistinguishedLevel.SELECT),
            ("Distinguished", DistinguishedLevel.DISTINGUISHED),
        ],
    )
    def test_distinguished_from_status(self, status, expected):
        assert ClubRecord.from_row(club_row("1", status=status)).distinguished_level == expected

    def test_distinguished_fallback_on_goals(self):
        record = ClubRecord.from_row(club_row("1", members=22, goals=5, status=""))
        assert record.distinguished_level == DistinguishedLevel.DISTINGUISHED

    def test_no_csp_is_never_distinguished(self):
        record = ClubRecord.from_row(club_row("1", status="Select Distinguished", csp="No"))
        assert record.is_distinguished is False

    def test_intervention_required(self):
        record = ClubRecord.from_row(club_row("1", members=8, base=10))
        status, risks = record.assess(program_month=7)
        assert status == HealthStatus.INTERVENTION_REQUIRED
        assert len(risks) == 2

    def test_growth_overrides_low_membership(self):
        """Eleven members but three new since July is not an intervention."""
        record = ClubRecord.from_row(club_row("1", members=11, base=8, goals=3))
        status, _ = record.assess(program_month=7)
        assert status == HealthStatus.THRIVING

    def test_vulnerable_lists_reasons(self):
        record = ClubRecord.from_row(club_row("1", members=15, base=15, goals=1, csp="No"))
        status, risks = record.assess(program_month=7)
        assert status == HealthStatus.VULNERABLE
        assert any("Membership below 20" in r for r in risks)
        assert any("checkpoint 2" in r for r in risks)
        assert "Club Success Plan not submitted" in risks

    def test_thriving(self):
        record = ClubRecord.from_row(club_row("1", members=25, base=20, goals=6))
        assert record.assess(program_month=12) == (HealthStatus.THRIVING, [])

    @pytest.mark.parametrize("month,goals", [(1, 0), (3, 0), (4, 1), (6, 2), (7, 2), (8, 3), (10, 4), (12, 5)])
    def test_dcp_checkpoints(self, month, goals):
        assert dcp_checkpoint(month) == goals


class TestCsvStatisticsBuilder:
    """Tests for the default snapshot content builder."""

    def test_builds_totals_and_optional_reports(self, cache_dir):
        unit_dir = write_raw_unit(
            cache_dir,
            "2025-01-10",
            "42",
            divisions=[{"Division": "A", "Clubs": "2"}],
            unit_rows=[{"District": "42", "Paid Club Base": "40"}],
        )
        data = CsvStatisticsBuilder().build("42", unit_dir)
        assert data["divisionPerformance"] == [{"Division": "A", "Clubs": "2"}]
        assert data["unitPerformance"][0]["Paid Club Base"] == "40"
        assert data["totals"] == {
            "totalClubs": 3,
            "totalMembership": 48,
            "membershipBase": 45,
            "totalPayments": 54,
            "distinguishedClubs": 1,
            "paidClubs": 3,
        }

    def test_missing_club_report(self, tmp_path):
        with pytest.raises(SourceNotFoundError):
            CsvStatisticsBuilder().build("42", tmp_path)

    def test_read_csv_rows_strips_and_skips_blank(self, tmp_path):
        path = tmp_path / "r.csv"
        path.write_text("\ufeffA, B\n 1 , 2 \n,\nMonth of Dec, As of 1/2/2025\n", encoding="utf-8")
        assert read_csv_rows(path) == [{"A": "1", "B": "2"}]

    def test_rows_round_trip_from_to_csv(self, tmp_path):
        path = tmp_path / "clubs.csv"
        path.write_text(to_csv([club_row("1")]), encoding="utf-8")
        assert read_csv_rows(path)[0]["Club Number"] == "1"
