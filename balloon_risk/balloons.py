# -*- coding: utf-8 -*-
"""
Balloon trail ingestion.

Hourly snapshot files (00.json .. 23.json) each hold one [lat, lon, alt] row per
balloon; a balloon keeps the same row index across hours. Rows are validated
here so the analysis modules never see bad coordinates.

Exposes:
- load_hourly_snapshots(directory, window_hours=24) -> dict[int, list]
- trails_from_hourly_snapshots(snapshots, now, window_hours=24) -> list[BalloonTrail]
- read_trails_csv(path) -> list[BalloonTrail]
- generate_mock_trails(now, count=4, hours=24, seed=None) -> list[BalloonTrail]
- altitude_color(altitude_m) -> "hsl(...)"
"""
from __future__ import annotations

import json
import logging
import math
import numbers
from datetime import datetime, timedelta
from pathlib import Path
from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .helpers import HOURLY_WINDOW, MIN_TRAIL_SAMPLES, bounds_ok
from .models import BalloonSample, BalloonTrail

MAX_COLOR_ALTITUDE_M = 30_000.0


def altitude_color(altitude_m: float) -> str:
    """Blue (ground) to red (30 km and up)."""
    frac = min(max(float(altitude_m), 0.0) / MAX_COLOR_ALTITUDE_M, 1.0)
    hue = (1.0 - frac) * 240.0
    return f"hsl({hue:g}, 70%, 50%)"


def _trail_color(samples: Sequence[BalloonSample]) -> str:
    return altitude_color(float(np.mean([s.altitude for s in samples])))


def _valid_row(row) -> bool:
    if not isinstance(row, (list, tuple)) or len(row) < 3:
        return False
    lat, lon, alt = row[0], row[1], row[2]
    for v in (lat, lon, alt):
        if isinstance(v, bool) or not isinstance(v, numbers.Real) or not math.isfinite(v):
            return False
    return bounds_ok(lat, lon)


# =============================================================================
# Hourly snapshots
# =============================================================================

def load_hourly_snapshots(directory: Path, window_hours: int = HOURLY_WINDOW) -> dict[int, list]:
    """Read NN.json files from a directory; missing or unreadable hours are skipped."""
    directory = Path(directory)
    out: dict[int, list] = {}
    for hour in range(window_hours):
        path = directory / f"{hour:02d}.json"
        if not path.exists():
            logging.warning(f"[Balloons] missing snapshot {path.name}")
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logging.warning(f"[Balloons] skipping unreadable snapshot {path.name}: {e}")
            continue
        if not isinstance(data, list):
            logging.warning(f"[Balloons] skipping {path.name}: expected a list, got {type(data).__name__}")
            continue
        out[hour] = data
    logging.info(f"[Balloons] loaded {len(out)}/{window_hours} hourly snapshots from {directory}")
    return out


def trails_from_hourly_snapshots(
    snapshots: Mapping[int, Sequence],
    now: datetime,
    window_hours: int = HOURLY_WINDOW,
) -> list[BalloonTrail]:
    """Assemble per-balloon trails from hourly snapshots.

    Hour h is stamped now - (window_hours - 1 - h) hours. The number of balloons
    comes from the earliest available hour; rows past that count are ignored.
    Trails with fewer than 2 valid samples are dropped.
    """
    hours = sorted(h for h, rows in snapshots.items() if isinstance(rows, (list, tuple)))
    if not hours:
        return []
    n_balloons = len(snapshots[hours[0]])
    ids = [f"balloon-{i:04d}" for i in range(n_balloons)]
    samples: list[list[BalloonSample]] = [[] for _ in range(n_balloons)]

    rejected = 0
    for h in hours:
        ts = now - timedelta(hours=window_hours - 1 - h)
        for i, row in enumerate(snapshots[h][:n_balloons]):
            if not _valid_row(row):
                rejected += 1
                continue
            samples[i].append(BalloonSample(
                lat=float(row[0]), lon=float(row[1]), altitude=float(row[2]),
                timestamp=ts, balloon_id=ids[i],
            ))

    trails = [
        BalloonTrail(balloon_id=ids[i], samples=tuple(s), color=_trail_color(s))
        for i, s in enumerate(samples)
        if len(s) >= MIN_TRAIL_SAMPLES
    ]
    logging.info(f"[Balloons] {len(trails)} trail(s) from {n_balloons} balloon(s); "
                 f"rejected {rejected} row(s), dropped {n_balloons - len(trails)} short trail(s)")
    return trails


# =============================================================================
# CSV
# =============================================================================

_CSV_COLUMNS = ["balloon_id", "latitude", "longitude", "altitude", "timestamp"]


def read_trails_csv(path: Path) -> list[BalloonTrail]:
    """Long-format CSV, one row per sample: balloon_id, latitude, longitude, altitude, timestamp."""
    logging.info(f"[I/O] reading balloon samples: {path}")
    df = pd.read_csv(path, encoding="utf-8")
    missing = [c for c in _CSV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing column(s) {', '.join(missing)}")

    df["latitude"] = pd.to_numeric(df["latitude"], errors="coerce")
    df["longitude"] = pd.to_numeric(df["longitude"], errors="coerce")
    df["altitude"] = pd.to_numeric(df["altitude"], errors="coerce")
    df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce", utc=True)

    ok = (
        df[["latitude", "longitude", "altitude"]].notna().all(axis=1)
        & df["timestamp"].notna()
        & df["latitude"].between(-90, 90)
        & df["longitude"].between(-180, 180)
    )
    if (~ok).any():
        logging.warning(f"[Balloons] dropped {int((~ok).sum()):,} invalid row(s) from {path}")
    df = df[ok]

    trails: list[BalloonTrail] = []
    for bid, g in df.groupby("balloon_id", sort=False):
        samples = tuple(
            BalloonSample(
                lat=float(r.latitude), lon=float(r.longitude), altitude=float(r.altitude),
                timestamp=r.timestamp.to_pydatetime(), balloon_id=str(bid),
            )
            for r in g.itertuples(index=False)
        )
        trails.append(BalloonTrail(balloon_id=str(bid), samples=samples, color=_trail_color(samples)))
    logging.info(f"[Balloons] {len(trails)} trail(s) from {len(df):,} sample(s)")
    return trails


# =============================================================================
# Mock data
# =============================================================================

def generate_mock_trails(
    now: datetime,
    count: int = 4,
    hours: int = HOURLY_WINDOW,
    seed: Optional[int] = None,
) -> list[BalloonTrail]:
    """Random-walk trails over the western Atlantic / Gulf, one sample per hour."""
    rng = np.random.default_rng(seed)
    trails: list[BalloonTrail] = []
    for i in range(count):
        bid = f"balloon-{i + 1}"
        lat = 20.0 + rng.random() * 30.0       # 20..50N
        lon = -100.0 + rng.random() * 40.0     # 100..60W
        altitude = 15_000.0 + rng.random() * 10_000.0
        samples = []
        for h in range(hours):
            samples.append(BalloonSample(
                lat=float(np.clip(lat, -90.0, 90.0)),
                lon=float(np.clip(lon, -180.0, 180.0)),
                altitude=float(altitude + (rng.random() - 0.5) * 2_000.0),
                timestamp=now - timedelta(hours=hours - 1 - h),
                balloon_id=bid,
            ))
            lat += (rng.random() - 0.5) * 2.0
            lon += (rng.random() - 0.5) * 2.0
            altitude += (rng.random() - 0.5) * 1_000.0
        trails.append(BalloonTrail(balloon_id=bid, samples=tuple(samples), color=altitude_color(altitude)))
    return trails
