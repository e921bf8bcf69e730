# -*- coding: utf-8 -*-
"""
Past / future intersections between balloon trails and storm cones.

Exposes:
- classify_intersections(trails, storms, now, threshold_km=100) -> list[Intersection]
  every trail sample within threshold of a cone, signed by its offset from `now`
- analyze_intersections(trails, storms, tracks, now, threshold_km=100, max_workers=None)
  historical samples + trajectory predictions, sorted by hours_from_now
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Optional, Sequence

import numpy as np

from .geometry import distances_to_polygon
from .helpers import RISK_THRESHOLD_KM
from .models import BalloonTrail, Intersection, IntersectionKind, StormPolygon, StormTrack
from .trajectory import predict_future_intersections, tracks_by_name

_HOUR = timedelta(hours=1)


def _classify_pair(
    trail: BalloonTrail,
    storm: StormPolygon,
    now: datetime,
    threshold_km: float,
) -> list[Intersection]:
    if len(trail) == 0:
        return []
    d = distances_to_polygon(trail.lats, trail.lons, storm)
    hits = np.flatnonzero(d <= threshold_km)
    if hits.size == 0:
        return []
    inside = storm.covers(trail.lats[hits], trail.lons[hits])

    out: list[Intersection] = []
    for j, i in enumerate(hits):
        s = trail.samples[int(i)]
        hours_from_now = (s.timestamp - now) / _HOUR
        out.append(Intersection(
            balloon_id=trail.balloon_id,
            storm_name=storm.name,
            kind=IntersectionKind.PAST if hours_from_now <= 0 else IntersectionKind.FUTURE,
            distance=float(d[i]),
            timestamp=s.timestamp,
            altitude=s.altitude,
            inside_cone=bool(inside[j]),
            hours_from_now=hours_from_now,
        ))
    return out


def classify_intersections(
    trails: Sequence[BalloonTrail],
    storms: Sequence[StormPolygon],
    now: datetime,
    threshold_km: float = RISK_THRESHOLD_KM,
) -> list[Intersection]:
    """One Intersection per trail sample within threshold_km of a storm cone (no de-duplication)."""
    out: list[Intersection] = []
    for trail in trails:
        for storm in storms:
            out.extend(_classify_pair(trail, storm, now, threshold_km))
    return out


def analyze_intersections(
    trails: Sequence[BalloonTrail],
    storms: Sequence[StormPolygon],
    tracks: Sequence[StormTrack],
    now: datetime,
    threshold_km: float = RISK_THRESHOLD_KM,
    max_workers: Optional[int] = None,
) -> list[Intersection]:
    """Historical + predicted intersections for every (trail, storm) pair.

    Pairs are independent; with max_workers > 1 they run on a thread pool and
    are merged back in pair order, so the result does not depend on scheduling.
    Sorted by hours_from_now (stable).
    """
    track_map = tracks_by_name(tracks)
    pairs = [(trail, storm) for trail in trails for storm in storms]

    def _run(pair) -> list[Intersection]:
        trail, storm = pair
        found = _classify_pair(trail, storm, now, threshold_km)
        found.extend(predict_future_intersections(trail, storm, track_map, threshold_km, now))
        return found

    t0 = time.perf_counter()
    if max_workers and max_workers > 1 and len(pairs) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            per_pair = list(ex.map(_run, pairs))
    else:
        per_pair = [_run(p) for p in pairs]

    out = [x for found in per_pair for x in found]
    out.sort(key=lambda x: x.hours_from_now)

    n_past = sum(1 for x in out if x.kind is IntersectionKind.PAST)
    logging.info(f"[Intersections] {len(out)} found ({n_past} past, {len(out) - n_past} future) "
                 f"over {len(pairs)} pair(s) in {time.perf_counter() - t0:.2f}s")
    return out
