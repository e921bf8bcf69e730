# -*- coding: utf-8 -*-
"""
Great-circle geometry primitives for balloon / storm analysis.

Exposes:
- GeoPoint, GeometryError
- SegmentTable: per-polyline table of unit vectors + great-circle normals,
  built once and queried for one or many points (numpy, vectorized)
- point_in_polygon(p, ring) -> bool          (boundary counts as inside)
- distance_point_to_polyline(p, line) -> km  (projection clamped to segment ends)
- nearest_point_on_polyline(p, line) -> (GeoPoint, km)
- distance_to_polygon(p, storm) -> km        (0 inside, else distance to boundary)
- distances_to_polygon(lats, lons, storm) -> ndarray

Coordinates are degrees; distances are kilometers on a 6371 km sphere.
Containment is planar in lon/lat (shapely), distance is spherical.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Union

import numpy as np
import shapely
from shapely.geometry import Polygon

from .helpers import from_unit_vectors, haversine_km, to_unit_vectors

_EPS = 1e-15


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float


class GeometryError(ValueError):
    """Malformed storm geometry. Carries the offending storm's name."""

    def __init__(self, storm_name: str, reason: str):
        super().__init__(f"storm {storm_name!r}: {reason}")
        self.storm_name = storm_name
        self.reason = reason


def _latlon_array(points: Iterable) -> np.ndarray:
    """Sequence of objects with .lat/.lon -> (n, 2) array of [lat, lon]."""
    return np.array([(float(p.lat), float(p.lon)) for p in points], dtype=float).reshape(-1, 2)


# =============================================================================
# Polylines
# =============================================================================

class SegmentTable:
    """Great-circle segments of a polyline, precomputed for repeated queries."""

    def __init__(self, points: Sequence):
        coords = _latlon_array(points)
        if len(coords) < 2:
            raise ValueError("polyline needs at least two points")
        if not np.all(np.isfinite(coords)):
            raise ValueError("polyline has non-finite coordinates")

        v = to_unit_vectors(coords[:, 0], coords[:, 1])
        self.coords = coords
        self.start = v[:-1]
        self.end = v[1:]
        normals = np.cross(self.start, self.end)
        norms = np.linalg.norm(normals, axis=1)
        # zero-length segments have no great circle; they resolve to their start point
        self.degenerate = norms < _EPS
        self.normals = normals / np.where(self.degenerate, 1.0, norms)[:, None]

    def __len__(self) -> int:
        return len(self.start)

    def nearest(self, lats, lons) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """For each query point: (distance_km, nearest_lat, nearest_lon) over all segments."""
        lats = np.atleast_1d(np.asarray(lats, dtype=float))
        lons = np.atleast_1d(np.asarray(lons, dtype=float))
        P = to_unit_vectors(lats, lons)[:, None, :]          # (k, 1, 3)
        n = self.normals[None, :, :]                          # (1, m, 3)
        A = self.start[None, :, :]
        B = self.end[None, :, :]

        # project onto each segment's great circle
        c = P - np.sum(P * n, axis=-1, keepdims=True) * n     # (k, m, 3)
        cn = np.linalg.norm(c, axis=-1)
        c_hat = c / np.where(cn > _EPS, cn, 1.0)[..., None]

        # projection is on the arc iff it sits between A and B going along n
        after_a = np.sum(np.cross(A, c_hat) * n, axis=-1) >= 0.0
        before_b = np.sum(np.cross(c_hat, B) * n, axis=-1) >= 0.0
        on_arc = after_a & before_b & (cn > _EPS) & ~self.degenerate[None, :]

        # otherwise clamp to whichever endpoint is closer
        b_closer = np.sum(P * B, axis=-1) > np.sum(P * A, axis=-1)
        endpoint = np.where(b_closer[..., None], B, A)
        closest = np.where(on_arc[..., None], c_hat, endpoint)

        clat, clon = from_unit_vectors(closest)
        d = haversine_km(lats[:, None], lons[:, None], clat, clon)   # (k, m)
        idx = np.argmin(d, axis=1)
        rows = np.arange(len(lats))
        return d[rows, idx], clat[rows, idx], clon[rows, idx]

    def distance_km(self, p) -> float:
        d, _, _ = self.nearest(p.lat, p.lon)
        return float(d[0])

    def nearest_point(self, p) -> tuple[GeoPoint, float]:
        d, clat, clon = self.nearest(p.lat, p.lon)
        return GeoPoint(lat=float(clat[0]), lon=float(clon[0])), float(d[0])


Polyline = Union[SegmentTable, Sequence]


def as_segment_table(polyline: Polyline) -> SegmentTable:
    if isinstance(polyline, SegmentTable):
        return polyline
    return SegmentTable(polyline)


def distance_point_to_polyline(p, polyline: Polyline) -> float:
    """Great-circle distance (km) from p to the closest point of the polyline."""
    return as_segment_table(polyline).distance_km(p)


def nearest_point_on_polyline(p, polyline: Polyline) -> tuple[GeoPoint, float]:
    return as_segment_table(polyline).nearest_point(p)


# =============================================================================
# Polygons
# =============================================================================

def polygon_from_ring(ring: Sequence) -> Polygon:
    """Closed ring of GeoPoint-likes -> prepared shapely Polygon (x=lon, y=lat)."""
    poly = Polygon([(float(p.lon), float(p.lat)) for p in ring])
    shapely.prepare(poly)
    return poly


def point_in_polygon(p, ring: Union[Polygon, Sequence]) -> bool:
    """Containment test; points on the boundary are inside."""
    poly = ring if isinstance(ring, Polygon) else polygon_from_ring(ring)
    return bool(shapely.covers(poly, shapely.points(float(p.lon), float(p.lat))))


def distances_to_polygon(lats, lons, storm) -> np.ndarray:
    """Vectorized distance_to_polygon over many points against one storm cone."""
    lats = np.atleast_1d(np.asarray(lats, dtype=float))
    lons = np.atleast_1d(np.asarray(lons, dtype=float))
    if lats.size == 0:
        return np.zeros(0, dtype=float)
    inside = storm.covers(lats, lons)
    d, _, _ = storm.boundary.nearest(lats, lons)
    return np.where(inside, 0.0, d)


def distance_to_polygon(p, storm) -> float:
    """0 inside the storm cone, else great-circle distance (km) to its boundary."""
    if point_in_polygon(p, storm.shape):
        return 0.0
    return storm.boundary.distance_km(p)
