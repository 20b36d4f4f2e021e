"""
Club trends index.

A club-number keyed map so a single club's standing is one lookup instead
of a scan over the club list. Each entry carries the current figures and,
when the prior-year snapshot has the same club, its membership and goals a
year ago.
"""

from __future__ import annotations

from typing import Any

from perfspine.analytics.health import ClubHealthEntry
from perfspine.snapshots.clubs import ClubRecord


def _trend_entry(entry: ClubHealthEntry, previous: ClubRecord | None) -> dict[str, Any]:
    item = entry.to_dict()
    if previous is None:
        item["previousYear"] = None
    else:
        item["previousYear"] = {
            "membership": previous.membership,
            "goalsMet": previous.goals_met,
            "membershipChange": entry.membership - previous.membership,
        }
    return item


def compute_club_trends_index(
    entries: list[ClubHealthEntry],
    previous_records: list[ClubRecord] | None = None,
) -> dict[str, Any]:
    previous_by_club = {r.club_number: r for r in previous_records or []}
    clubs = {
        entry.club_id: _trend_entry(entry, previous_by_club.get(entry.club_id))
        for entry in entries
    }
    return {"totalClubs": len(clubs), "clubs": clubs}


__all__ = ["compute_club_trends_index"]
