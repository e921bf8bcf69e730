# -*- coding: utf-8 -*-
"""
Future-risk prediction from a balloon's recent motion.

The balloon's velocity (deg/h) is the mean of its last few hourly deltas and
its position is extrapolated linearly in lat/lon. With a forecast track, the
closest approach over the horizon is accepted only when the balloon is heading
at the track, actually converging, and gets substantially closer; without a
track the first hour the balloon comes within threshold of the cone wins.

Exposes:
- estimate_velocity(trail, window=5) -> (v_lat, v_lon) | None
- vector_convergence(lat, lon, v_lat, v_lon, track) -> float in [-1, 1]
- closest_approach(last, v_lat, v_lon, track) -> ClosestApproach
- predict_future_intersections(trail, storm, tracks, threshold_km, now) -> list[Intersection]
- tracks_by_name(tracks) -> dict[str, StormTrack]
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping, Optional, Sequence, Union

import numpy as np

from .geometry import distances_to_polygon
from .helpers import (
    CONVERGENCE_MIN, HORIZON_HOURS, IMPROVEMENT_RATIO, MIN_PREDICTION_SAMPLES,
    RISK_THRESHOLD_KM, TRACK_STEP_HOURS, VELOCITY_WINDOW,
)
from .models import (
    BalloonSample, BalloonTrail, Intersection, IntersectionKind, StormPolygon, StormTrack,
)

Tracks = Union[Sequence[StormTrack], Mapping[str, StormTrack]]


# =============================================================================
# Velocity
# =============================================================================

def estimate_velocity(trail: BalloonTrail, window: int = VELOCITY_WINDOW) -> Optional[tuple[float, float]]:
    """Mean per-step (lat, lon) delta over the last `window` samples, in deg/hour.

    Samples are taken to be one hour apart; the sum of deltas is divided by the
    number of pairs, not by elapsed time. Returns None with fewer than 2 deltas.
    """
    recent = trail.samples[-window:]
    if len(recent) - 1 < 2:
        return None
    lats = np.array([s.lat for s in recent], dtype=float)
    lons = np.array([s.lon for s in recent], dtype=float)
    return float(np.diff(lats).mean()), float(np.diff(lons).mean())


def _extrapolate(last: BalloonSample, v_lat: float, v_lon: float, hours: np.ndarray):
    return last.lat + v_lat * hours, last.lon + v_lon * hours


# =============================================================================
# Track-based closest approach
# =============================================================================

def vector_convergence(lat: float, lon: float, v_lat: float, v_lon: float, track: StormTrack) -> float:
    """Cosine between the balloon heading and the direction to the nearest track point.

    > 0 heading toward the track, < 0 heading away, 0 if either vector is zero.
    """
    _, nlat, nlon = track.segments.nearest(lat, lon)
    to_lat = float(nlat[0]) - lat
    to_lon = float(nlon[0]) - lon

    speed = math.hypot(v_lat, v_lon)
    gap = math.hypot(to_lat, to_lon)
    if speed == 0 or gap == 0:
        return 0.0
    return (v_lat / speed) * (to_lat / gap) + (v_lon / speed) * (to_lon / gap)


@dataclass(frozen=True)
class ClosestApproach:
    min_distance: float        # km, over the horizon
    hours: float               # time of min_distance
    current_distance: float    # km, from the last sample
    convergence: float         # see vector_convergence
    is_converging: bool

    def will_intersect(
        self,
        threshold_km: float = RISK_THRESHOLD_KM,
        convergence_min: float = CONVERGENCE_MIN,
        improvement_ratio: float = IMPROVEMENT_RATIO,
    ) -> bool:
        return (
            self.min_distance <= threshold_km
            and self.convergence > convergence_min
            and self.is_converging
            and self.min_distance < self.current_distance * improvement_ratio
        )


def closest_approach(
    last: BalloonSample,
    v_lat: float,
    v_lon: float,
    track: StormTrack,
    horizon_hours: float = HORIZON_HOURS,
    step_hours: float = TRACK_STEP_HOURS,
) -> ClosestApproach:
    """Scan t = 1h .. horizon in step_hours increments for the nearest approach to the track."""
    current = track.segments.distance_km(last.point)

    hours = np.arange(1.0, horizon_hours + step_hours / 2, step_hours)
    lats, lons = _extrapolate(last, v_lat, v_lon, hours)
    d, _, _ = track.segments.nearest(lats, lons)
    # first occurrence of the minimum
    i = int(np.argmin(d))
    min_distance = float(d[i])

    return ClosestApproach(
        min_distance=min_distance,
        hours=float(hours[i]),
        current_distance=current,
        convergence=vector_convergence(last.lat, last.lon, v_lat, v_lon, track),
        is_converging=min_distance < current,
    )


# =============================================================================
# Prediction
# =============================================================================

def tracks_by_name(tracks: Sequence[StormTrack]) -> dict[str, StormTrack]:
    """name -> track. Names are matched exactly; on duplicates the first track wins."""
    out: dict[str, StormTrack] = {}
    for t in tracks:
        if t.name in out:
            logging.warning(f"[Predict] duplicate track for storm {t.name!r}; keeping the first")
            continue
        out[t.name] = t
    return out


def _find_track(storm_name: str, tracks: Optional[Tracks]) -> Optional[StormTrack]:
    if not tracks:
        return None
    if isinstance(tracks, Mapping):
        return tracks.get(storm_name)
    return next((t for t in tracks if t.name == storm_name), None)


def predict_future_intersections(
    trail: BalloonTrail,
    storm: StormPolygon,
    tracks: Optional[Tracks],
    threshold_km: float,
    now: datetime,
    *,
    horizon_hours: int = HORIZON_HOURS,
    step_hours: float = TRACK_STEP_HOURS,
    window: int = VELOCITY_WINDOW,
) -> list[Intersection]:
    """At most one FUTURE intersection for this (trail, storm) pair."""
    if len(trail) < MIN_PREDICTION_SAMPLES:
        return []
    velocity = estimate_velocity(trail, window=window)
    if velocity is None:
        return []
    v_lat, v_lon = velocity
    last = trail.samples[-1]

    track = _find_track(storm.name, tracks)
    if track is not None:
        approach = closest_approach(last, v_lat, v_lon, track, horizon_hours, step_hours)
        logging.debug(
            f"[Predict] {trail.balloon_id} → {storm.name} track: "
            f"min={approach.min_distance:.1f} km @ {approach.hours:g}h "
            f"current={approach.current_distance:.1f} km c={approach.convergence:+.2f}"
        )
        if not approach.will_intersect(threshold_km):
            return []
        return [Intersection(
            balloon_id=trail.balloon_id,
            storm_name=storm.name,
            kind=IntersectionKind.FUTURE,
            distance=approach.min_distance,
            timestamp=now + timedelta(hours=approach.hours),
            altitude=last.altitude,
            inside_cone=False,
            hours_from_now=approach.hours,
        )]

    # no track: first whole hour within threshold of the cone
    hours = np.arange(1, horizon_hours + 1, dtype=float)
    lats, lons = _extrapolate(last, v_lat, v_lon, hours)
    d = distances_to_polygon(lats, lons, storm)
    hits = np.flatnonzero(d <= threshold_km)
    if hits.size == 0:
        return []
    i = int(hits[0])
    logging.debug(f"[Predict] {trail.balloon_id} → {storm.name} cone: {d[i]:.1f} km @ {hours[i]:g}h")
    return [Intersection(
        balloon_id=trail.balloon_id,
        storm_name=storm.name,
        kind=IntersectionKind.FUTURE,
        distance=float(d[i]),
        timestamp=now + timedelta(hours=float(hours[i])),
        altitude=last.altitude,
        inside_cone=True,
        hours_from_now=float(hours[i]),
    )]
