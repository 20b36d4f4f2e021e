"""Derive a :class:`TimeSeriesDataPoint` from a unit snapshot."""

from __future__ import annotations

from perfspine.core.program_year import program_month
from perfspine.snapshots.clubs import HealthStatus, club_records, parse_int
from perfspine.snapshots.models import UnitSnapshot
from perfspine.timeseries.models import ClubCounts, TimeSeriesDataPoint


class TimeSeriesDataPointBuilder:
    """Maps snapshot content to the handful of tracked measurements.

    - membership: ``totals.totalMembership`` when present, else the sum of
      ``Active Members`` over clubs
    - payments: October renewals + April renewals + new members
    - dcpGoals: sum of ``Goals Met``
    - distinguishedTotal: clubs at any distinguished level
    - clubCounts: health buckets for the snapshot's program month, the same
      rules the club-health artifact uses
    """

    def build(self, snapshot: UnitSnapshot) -> TimeSeriesDataPoint:
        records = club_records(snapshot.clubs)
        totals = snapshot.totals

        if "totalMembership" in totals:
            membership = parse_int(totals["totalMembership"])
        else:
            membership = sum(r.membership for r in records)

        month = program_month(snapshot.snapshot_date)
        counts = ClubCounts(total=len(records))
        for record in records:
            status, _ = record.assess(month)
            if status == HealthStatus.INTERVENTION_REQUIRED:
                counts.intervention_required += 1
            elif status == HealthStatus.THRIVING:
                counts.thriving += 1
            else:
                counts.vulnerable += 1

        return TimeSeriesDataPoint(
            date=snapshot.snapshot_date,
            snapshot_id=snapshot.snapshot_date,
            membership=membership,
            payments=sum(r.payments for r in records),
            dcp_goals=sum(r.goals_met for r in records),
            distinguished_total=sum(1 for r in records if r.is_distinguished),
            club_counts=counts,
        )


__all__ = ["TimeSeriesDataPointBuilder"]
