# ----
# helpers.py (constants, logging, paths, great-circle helpers)
# ----
from __future__ import annotations

import logging
import os
import shutil
import sys
import time
from pathlib import Path
from typing import Dict, Optional

import numpy as np

# ---- constants ----
EARTH_RADIUS_KM = 6371.0
RISK_THRESHOLD_KM = 100.0

# trajectory prediction
VELOCITY_WINDOW = 5          # samples used for the velocity estimate
MIN_PREDICTION_SAMPLES = 3
HORIZON_HOURS = 48
TRACK_STEP_HOURS = 0.5
CONVERGENCE_MIN = 0.9        # cosine between heading and bearing-to-track
IMPROVEMENT_RATIO = 0.8      # min distance must beat current distance by 20%

MIN_TRAIL_SAMPLES = 2
RECENT_WINDOW_HOURS = 5
HOURLY_WINDOW = 24

# ---- logging ----
def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """UTF-8 logging to console (and optional file), safe for repeat calls."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%H:%M:%S",
    )

    sh = logging.StreamHandler(stream=sys.stdout)
    reconfigure = getattr(sh.stream, "reconfigure", None)
    if reconfigure is not None:
        reconfigure(encoding="utf-8")
    sh.setFormatter(fmt)
    root.addHandler(sh)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(fmt)
        root.addHandler(fh)
        logging.info(f"Logging to file: {log_file}")


# section timings for the pipeline log
_section_times: Dict[str, float] = {}
_pipeline_start: float = time.time()


def _log_header(stage: str, message: str) -> None:
    logging.info(f"[{stage}] {message}")
    _section_times[stage] = time.time()


def _log_processed(stage: str, processed: int, skipped: Optional[int] = None, make_separator: bool = True) -> None:
    elapsed = time.time() - _section_times.get(stage, time.time())
    if skipped is None:
        logging.info(f"[{stage}] Processed={processed:,}")
    else:
        logging.info(f"[{stage}] Processed={processed:,}  Skipped={skipped:,}")
    logging.info(f"[{stage}] Elapsed: {elapsed:.2f}s")
    if make_separator:
        _log_separator()


def _log_separator() -> None:
    width = shutil.get_terminal_size(fallback=(80, 24)).columns
    logging.info("-" * width)


def _log_pipeline_done() -> None:
    total = time.time() - _pipeline_start
    logging.info(f"[Pipeline] Completed in {total:.2f}s")


# ---- pathing ----
# Base folder for local inputs (default: ./data). Can override via env var.
def data_dir() -> Path:
    return Path(os.getenv("BALLOON_RISK_DATA_DIR", "data")).expanduser().resolve()


def output_dir() -> Path:
    return Path(os.getenv("BALLOON_RISK_OUTPUT_DIR", "balloon_risk_output")).expanduser().resolve()


def data_path(*parts: str) -> Path:
    """
    Build a path inside the data directory. Accepts either "a/b" or "a\\b".
    Example: data_path("hourly", "00.json")
    """
    p = Path(parts[0])
    for q in parts[1:]:
        p = p / q
    return (data_dir() / p).resolve()


# ---- small utils ----
def bounds_ok(lat: float, lon: float) -> bool:
    return (-90 <= lat <= 90) and (-180 <= lon <= 180)


def haversine_km(lat1, lon1, lat2, lon2):
    """
    Vectorized great-circle distance in km.
    Works for any mix of scalars/vectors by broadcasting all inputs
    to a common shape before masking.
    """
    A1, B1, A2, B2 = np.broadcast_arrays(
        np.asarray(lat1, dtype=float),
        np.asarray(lon1, dtype=float),
        np.asarray(lat2, dtype=float),
        np.asarray(lon2, dtype=float),
    )
    out = np.full(A1.shape, np.nan, dtype=float)

    m = np.isfinite(A1) & np.isfinite(B1) & np.isfinite(A2) & np.isfinite(B2)
    if not np.any(m):
        return out

    p1 = np.radians(A1[m]); p2 = np.radians(A2[m])
    dlat = p2 - p1
    dlon = np.radians(B2[m] - B1[m])

    with np.errstate(invalid="ignore"):
        a = np.sin(dlat/2.0)**2 + np.cos(p1)*np.cos(p2)*np.sin(dlon/2.0)**2
        out[m] = 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))
    return out


def to_unit_vectors(lat, lon) -> np.ndarray:
    """Lat/lon degrees -> unit vectors on the sphere, shape (..., 3)."""
    phi = np.radians(np.asarray(lat, dtype=float))
    lam = np.radians(np.asarray(lon, dtype=float))
    cphi = np.cos(phi)
    return np.stack([cphi * np.cos(lam), cphi * np.sin(lam), np.sin(phi)], axis=-1)


def from_unit_vectors(v: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Unit vectors (..., 3) -> (lat, lon) degrees."""
    x, y, z = v[..., 0], v[..., 1], v[..., 2]
    lat = np.degrees(np.arctan2(z, np.hypot(x, y)))
    lon = np.degrees(np.arctan2(y, x))
    return lat, lon
