# ----
# main.py
# ----
"""
Balloon / hurricane risk pipeline.

CLI:
python -m balloon_risk.main [--hourly-dir DIR | --trails-csv CSV | --mock-balloons]
                            [--storm-layer PATH ... | --mock-storms]
                            [--now ISO] [--threshold-km 100] [--out-dir DIR]
"""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd
from dotenv import load_dotenv

from .balloons import (
    generate_mock_trails, load_hourly_snapshots, read_trails_csv, trails_from_hourly_snapshots,
)
from .helpers import (
    HOURLY_WINDOW, RECENT_WINDOW_HOURS, RISK_THRESHOLD_KM,
    _log_header, _log_pipeline_done, _log_processed, data_path, output_dir, setup_logging,
)
from .intersections import analyze_intersections
from .models import BalloonTrail, Intersection, ProximityAlert, StormPolygon, StormTrack
from .proximity import analyze_proximity
from .results import FilterMode, display_trails, summarize, to_frame, trails_frame
from .storms import mock_storms, read_storm_layer


# =============================================================================
# Config
# =============================================================================

@dataclass
class Config:
    # Balloon inputs (first one set wins)
    hourly_dir: Optional[Path] = None
    trails_csv: Optional[Path] = None
    mock_balloons: bool = False
    mock_seed: Optional[int] = None
    window_hours: int = HOURLY_WINDOW

    # Storm inputs
    storm_layers: list[Path] = field(default_factory=list)
    name_column: str = "stormName"
    mock_storms: bool = False

    # Analysis
    now: Optional[datetime] = None
    threshold_km: float = RISK_THRESHOLD_KM
    max_workers: Optional[int] = None
    filter_mode: FilterMode = FilterMode.ALL
    recent_hours: float = RECENT_WINDOW_HOURS

    # Output
    out_dir: Optional[Path] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="balloon_risk",
        description="Balloon trail proximity & hurricane intersection analysis",
    )
    src = p.add_mutually_exclusive_group()
    src.add_argument("--hourly-dir", type=Path, help="Directory of hourly snapshots 00.json..23.json")
    src.add_argument("--trails-csv", type=Path, help="Long-format balloon samples CSV (utf-8)")
    src.add_argument("--mock-balloons", action="store_true", help="Use generated random-walk trails")
    p.add_argument("--mock-seed", type=int, help="Seed for --mock-balloons")
    p.add_argument("--window-hours", type=int, default=HOURLY_WINDOW)

    p.add_argument("--storm-layer", type=Path, action="append", default=[],
                   help="Vector layer with storm cones and/or tracks (repeatable)")
    p.add_argument("--name-column", type=str, default="stormName")
    p.add_argument("--mock-storms", action="store_true", help="Use the built-in test storms")

    p.add_argument("--now", type=str, help="Analysis time, ISO-8601 (default: current UTC time)")
    p.add_argument("--threshold-km", type=float, default=RISK_THRESHOLD_KM)
    p.add_argument("--max-workers", type=int, help="Thread pool size for per-pair analysis")
    p.add_argument("--filter", dest="filter_mode", type=str, default=FilterMode.ALL.value,
                   choices=[m.value for m in FilterMode])
    p.add_argument("--recent-hours", type=float, default=RECENT_WINDOW_HOURS)

    p.add_argument("--out-dir", type=Path, help="Output folder (default: $BALLOON_RISK_OUTPUT_DIR)")

    p.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.add_argument("--log-file", type=Path, help="Optional utf-8 log file path")
    return p


def parse_now(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 -> tz-aware datetime; naive input is taken as UTC."""
    if not value:
        return None
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.to_pydatetime()


def cfg_from_args(args: argparse.Namespace) -> Config:
    return Config(
        hourly_dir=args.hourly_dir,
        trails_csv=args.trails_csv,
        mock_balloons=bool(args.mock_balloons),
        mock_seed=args.mock_seed,
        window_hours=int(args.window_hours),
        storm_layers=list(args.storm_layer),
        name_column=args.name_column,
        mock_storms=bool(args.mock_storms),
        now=parse_now(args.now),
        threshold_km=float(args.threshold_km),
        max_workers=args.max_workers,
        filter_mode=FilterMode(args.filter_mode),
        recent_hours=float(args.recent_hours),
        out_dir=args.out_dir,
        log_level=args.log_level,
        log_file=args.log_file,
    )


# =============================================================================
# Stages
# =============================================================================

def load_trails(cfg: Config, now: datetime) -> list[BalloonTrail]:
    if cfg.hourly_dir is not None:
        snapshots = load_hourly_snapshots(cfg.hourly_dir, cfg.window_hours)
        return trails_from_hourly_snapshots(snapshots, now, cfg.window_hours)
    if cfg.trails_csv is not None:
        return read_trails_csv(cfg.trails_csv)
    if cfg.mock_balloons:
        return generate_mock_trails(now, hours=cfg.window_hours, seed=cfg.mock_seed)
    default_dir = data_path("hourly")
    logging.info(f"[Balloons] no balloon input given; trying {default_dir}")
    return trails_from_hourly_snapshots(load_hourly_snapshots(default_dir, cfg.window_hours), now, cfg.window_hours)


def load_storms(cfg: Config) -> tuple[list[StormPolygon], list[StormTrack]]:
    cones: list[StormPolygon] = []
    tracks: list[StormTrack] = []
    for path in cfg.storm_layers:
        c, t = read_storm_layer(path, name_column=cfg.name_column)
        cones.extend(c)
        tracks.extend(t)
    if cfg.mock_storms:
        c, t = mock_storms()
        cones.extend(c)
        tracks.extend(t)
    if not cones:
        logging.info("[Storms] no active storms")
    return cones, tracks


def write_outputs(frames: dict[str, pd.DataFrame], out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, df in frames.items():
        path = out_dir / f"{name}.csv"
        df.to_csv(path, index=False, encoding="utf-8")
        logging.info(f"[I/O] wrote {len(df):,} {name} → {path}")


def run(cfg: Config) -> dict[str, int]:
    now = cfg.now or datetime.now(timezone.utc)
    logging.info(f"[Pipeline] analysis time {now.isoformat()}, threshold {cfg.threshold_km:g} km")

    _log_header("Balloons", "Loading balloon trails...")
    trails = load_trails(cfg, now)
    _log_processed("Balloons", len(trails))

    _log_header("Storms", "Loading storm cones and tracks...")
    cones, tracks = load_storms(cfg)
    _log_processed("Storms", len(cones) + len(tracks))

    _log_header("Analysis", "Proximity and intersection analysis...")
    alerts = analyze_proximity(trails, cones, cfg.threshold_km)
    intersections = analyze_intersections(
        trails, cones, tracks, now, threshold_km=cfg.threshold_km, max_workers=cfg.max_workers,
    )
    shown = display_trails(trails, intersections, cfg.filter_mode, now, cfg.recent_hours)
    _log_processed("Analysis", len(alerts) + len(intersections))

    stats = summarize(trails, intersections, cones)
    stats["displayed_balloons"] = len(shown)
    for k, v in stats.items():
        logging.info(f"[Summary] {k}={v:,}")

    write_outputs(
        {
            "alerts": to_frame(alerts, ProximityAlert),
            "intersections": to_frame(intersections, Intersection),
            "trails": trails_frame(shown, cones, cfg.threshold_km),
        },
        cfg.out_dir or output_dir(),
    )
    return stats


def main(argv: Optional[Iterable[str]] = None) -> int:
    load_dotenv()
    args = build_arg_parser().parse_args(argv)
    cfg = cfg_from_args(args)
    setup_logging(cfg.log_level, cfg.log_file)
    logging.info("Starting balloon risk pipeline...")

    run(cfg)

    _log_pipeline_done()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
