"""Value types shared by the analysis modules. Everything here is immutable."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import cached_property
from typing import Iterable, Sequence

import numpy as np
import shapely
from shapely.geometry import Polygon

from .geometry import GeoPoint, GeometryError, SegmentTable, polygon_from_ring

__all__ = [
    "GeoPoint", "GeometryError", "BalloonSample", "BalloonTrail",
    "StormPolygon", "StormTrack", "ProximityAlert", "IntersectionKind",
    "Intersection",
]


# =============================================================================
# Balloons
# =============================================================================

@dataclass(frozen=True)
class BalloonSample:
    lat: float
    lon: float
    altitude: float            # meters
    timestamp: datetime        # tz-aware
    balloon_id: str

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lon=self.lon)


@dataclass(frozen=True)
class BalloonTrail:
    balloon_id: str
    samples: tuple[BalloonSample, ...] = ()
    color: str = "#0066cc"  # display only

    def __post_init__(self):
        # stable: equal timestamps keep their ingestion order
        object.__setattr__(self, "samples", tuple(sorted(self.samples, key=lambda s: s.timestamp)))

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def last(self) -> BalloonSample | None:
        return self.samples[-1] if self.samples else None

    @cached_property
    def lats(self) -> np.ndarray:
        return np.array([s.lat for s in self.samples], dtype=float)

    @cached_property
    def lons(self) -> np.ndarray:
        return np.array([s.lon for s in self.samples], dtype=float)

    def with_samples(self, samples: Iterable[BalloonSample]) -> "BalloonTrail":
        return BalloonTrail(balloon_id=self.balloon_id, samples=tuple(samples), color=self.color)


# =============================================================================
# Storms
# =============================================================================

def _points_from_lonlat(coords: Iterable[Sequence[float]]) -> tuple[GeoPoint, ...]:
    return tuple(GeoPoint(lat=float(c[1]), lon=float(c[0])) for c in coords)


def _finite(points: Sequence[GeoPoint]) -> bool:
    return all(math.isfinite(p.lat) and math.isfinite(p.lon) for p in points)


@dataclass(frozen=True)
class StormPolygon:
    """Forecast cone: one exterior ring. An open ring is closed on construction."""

    name: str
    ring: tuple[GeoPoint, ...]

    def __post_init__(self):
        ring = tuple(self.ring)
        if not ring:
            raise GeometryError(self.name, "empty cone ring")
        if not _finite(ring):
            raise GeometryError(self.name, "cone ring has non-finite coordinates")
        if ring[0] != ring[-1]:
            ring = ring + (ring[0],)
        if len(set(ring)) < 3:
            raise GeometryError(self.name, f"cone ring needs 3+ distinct vertices, got {len(set(ring))}")
        object.__setattr__(self, "ring", ring)

    @classmethod
    def from_lonlat(cls, name: str, coords: Iterable[Sequence[float]]) -> "StormPolygon":
        """Build from GeoJSON-ordered [lon, lat] pairs."""
        return cls(name=name, ring=_points_from_lonlat(coords))

    @cached_property
    def shape(self) -> Polygon:
        return polygon_from_ring(self.ring)

    @cached_property
    def boundary(self) -> SegmentTable:
        return SegmentTable(self.ring)

    def covers(self, lats, lons) -> np.ndarray:
        return shapely.covers(self.shape, shapely.points(np.asarray(lons, dtype=float), np.asarray(lats, dtype=float)))


@dataclass(frozen=True)
class StormTrack:
    """Forecast center-line, correlated with its cone by exact name."""

    name: str
    points: tuple[GeoPoint, ...]

    def __post_init__(self):
        points = tuple(self.points)
        if len(points) < 2:
            raise GeometryError(self.name, f"track needs 2+ points, got {len(points)}")
        if not _finite(points):
            raise GeometryError(self.name, "track has non-finite coordinates")
        object.__setattr__(self, "points", points)

    @classmethod
    def from_lonlat(cls, name: str, coords: Iterable[Sequence[float]]) -> "StormTrack":
        return cls(name=name, points=_points_from_lonlat(coords))

    @cached_property
    def segments(self) -> SegmentTable:
        return SegmentTable(self.points)


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class ProximityAlert:
    balloon_id: str
    storm_name: str
    closest_distance: float    # km
    timestamp: datetime
    altitude: float
    inside_cone: bool


class IntersectionKind(str, Enum):
    PAST = "past"
    FUTURE = "future"


@dataclass(frozen=True)
class Intersection:
    balloon_id: str
    storm_name: str
    kind: IntersectionKind
    distance: float            # km
    timestamp: datetime
    altitude: float
    inside_cone: bool
    hours_from_now: float      # negative = past
