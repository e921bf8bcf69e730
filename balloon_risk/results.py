"""Filters and views over analysis output. Nothing here mutates its inputs."""
from __future__ import annotations

from dataclasses import asdict, fields
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Sequence, Union

import pandas as pd

from .helpers import RECENT_WINDOW_HOURS, RISK_THRESHOLD_KM
from .models import BalloonTrail, Intersection, IntersectionKind, ProximityAlert, StormPolygon
from .proximity import trail_segments_in_risk


class FilterMode(str, Enum):
    ALL = "all"
    PAST = "past-intersections"
    FUTURE = "future-intersections"


def by_kind(intersections: Iterable[Intersection], kind: IntersectionKind) -> list[Intersection]:
    return [x for x in intersections if x.kind is kind]


def past_intersections(intersections: Iterable[Intersection]) -> list[Intersection]:
    return by_kind(intersections, IntersectionKind.PAST)


def future_intersections(intersections: Iterable[Intersection]) -> list[Intersection]:
    return by_kind(intersections, IntersectionKind.FUTURE)


def balloons_having_kind(
    trails: Sequence[BalloonTrail],
    intersections: Iterable[Intersection],
    kind: IntersectionKind,
) -> list[BalloonTrail]:
    """Trails with at least one intersection of `kind`, in input order."""
    ids = {x.balloon_id for x in intersections if x.kind is kind}
    return [t for t in trails if t.balloon_id in ids]


def recent_trajectory(trail: BalloonTrail, hours: float, now: datetime) -> BalloonTrail:
    """Copy of the trail keeping only samples at or after now - hours."""
    cutoff = now - timedelta(hours=hours)
    return trail.with_samples(s for s in trail.samples if s.timestamp >= cutoff)


def display_trails(
    trails: Sequence[BalloonTrail],
    intersections: Sequence[Intersection],
    mode: FilterMode,
    now: datetime,
    recent_hours: float = RECENT_WINDOW_HOURS,
) -> list[BalloonTrail]:
    mode = FilterMode(mode)
    if mode is FilterMode.PAST:
        return balloons_having_kind(trails, intersections, IntersectionKind.PAST)
    if mode is FilterMode.FUTURE:
        at_risk = balloons_having_kind(trails, intersections, IntersectionKind.FUTURE)
        return [recent_trajectory(t, recent_hours, now) for t in at_risk]
    return list(trails)


def summarize(
    trails: Sequence[BalloonTrail],
    intersections: Sequence[Intersection],
    storms: Sequence[StormPolygon],
) -> dict[str, int]:
    """Counts of distinct balloons per intersection kind."""
    return {
        "total_balloons": len(trails),
        "past_intersection_balloons": len({x.balloon_id for x in past_intersections(intersections)}),
        "future_risk_balloons": len({x.balloon_id for x in future_intersections(intersections)}),
        "active_storms": len(storms),
    }


def to_frame(records: Sequence[Union[ProximityAlert, Intersection]], record_type: type) -> pd.DataFrame:
    """Alerts or intersections as a DataFrame (kind as string, timestamps ISO-8601).

    Columns come from `record_type`, so an empty result still has a header.
    """
    rows = []
    for r in records:
        row = asdict(r)
        if "kind" in row:
            row["kind"] = row["kind"].value
        row["timestamp"] = row["timestamp"].isoformat()
        rows.append(row)
    return pd.DataFrame(rows, columns=[f.name for f in fields(record_type)])


TRAIL_COLUMNS = ["balloon_id", "latitude", "longitude", "altitude", "timestamp", "color", "risk_segment"]


def trails_frame(
    trails: Sequence[BalloonTrail],
    storms: Sequence[StormPolygon],
    threshold_km: float = RISK_THRESHOLD_KM,
) -> pd.DataFrame:
    """One row per sample. risk_segment marks samples starting a segment near a storm."""
    rows = []
    for trail in trails:
        risky = set(trail_segments_in_risk(trail, storms, threshold_km))
        for i, s in enumerate(trail.samples):
            rows.append((
                trail.balloon_id, s.lat, s.lon, s.altitude,
                s.timestamp.isoformat(), trail.color, i in risky,
            ))
    return pd.DataFrame(rows, columns=TRAIL_COLUMNS)
