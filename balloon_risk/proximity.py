# -*- coding: utf-8 -*-
"""
Closest-approach alerts between balloon trails and storm cones.

Exposes:
- analyze_proximity(trails, storms, threshold_km=100) -> list[ProximityAlert]
- trail_segments_in_risk(trail, storms, threshold_km=100) -> list[int]
"""
from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from .geometry import distances_to_polygon
from .helpers import MIN_TRAIL_SAMPLES, RISK_THRESHOLD_KM
from .models import BalloonTrail, ProximityAlert, StormPolygon


def _closest_sample(trail: BalloonTrail, storm: StormPolygon) -> tuple[int, float]:
    d = distances_to_polygon(trail.lats, trail.lons, storm)
    # argmin returns the first index on ties
    i = int(np.argmin(d))
    return i, float(d[i])


def analyze_proximity(
    trails: Sequence[BalloonTrail],
    storms: Sequence[StormPolygon],
    threshold_km: float = RISK_THRESHOLD_KM,
) -> list[ProximityAlert]:
    """One alert per (trail, storm) whose closest sample is within threshold_km, nearest first."""
    alerts: list[ProximityAlert] = []
    skipped = 0
    for trail in trails:
        if len(trail) < MIN_TRAIL_SAMPLES:
            skipped += 1
            continue
        for storm in storms:
            i, dist = _closest_sample(trail, storm)
            if dist > threshold_km:
                continue
            s = trail.samples[i]
            alerts.append(ProximityAlert(
                balloon_id=trail.balloon_id,
                storm_name=storm.name,
                closest_distance=dist,
                timestamp=s.timestamp,
                altitude=s.altitude,
                inside_cone=bool(storm.covers(s.lat, s.lon)),
            ))
            logging.debug(f"[Proximity] {trail.balloon_id} ↔ {storm.name}: {dist:.1f} km at {s.timestamp}")

    if skipped:
        logging.debug(f"[Proximity] skipped {skipped} trail(s) with < {MIN_TRAIL_SAMPLES} samples")
    logging.info(f"[Proximity] {len(alerts)} alert(s) within {threshold_km:g} km "
                 f"({len(trails)} trails x {len(storms)} storms)")
    # list.sort is stable: equal distances keep pair order
    alerts.sort(key=lambda a: a.closest_distance)
    return alerts


def trail_segments_in_risk(
    trail: BalloonTrail,
    storms: Sequence[StormPolygon],
    threshold_km: float = RISK_THRESHOLD_KM,
) -> list[int]:
    """Indices i of segments (sample i -> i+1) with either endpoint within threshold of any storm."""
    if len(trail) < 2 or not storms:
        return []
    near = np.zeros(len(trail), dtype=bool)
    for storm in storms:
        near |= distances_to_polygon(trail.lats, trail.lons, storm) <= threshold_km
    seg = near[:-1] | near[1:]
    return [int(i) for i in np.flatnonzero(seg)]
