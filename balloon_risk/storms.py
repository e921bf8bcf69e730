# -*- coding: utf-8 -*-
"""
Storm cone / track ingestion.

Cones and tracks arrive as vector layers (GeoJSON, GPKG, ...) with a storm-name
attribute; a cone and a track belong to the same storm when the names match
exactly. Only the first ring of the first polygon is used for multi-part cones.

Exposes:
- read_storm_layer(path, name_column="stormName") -> (cones, tracks)
- storms_from_frame(gdf, name_column="stormName") -> (cones, tracks)
- cone_from_center(name, lat, lon, intensity_kt, vertices=32) -> StormPolygon
- mock_storms() -> (cones, tracks)
"""
from __future__ import annotations

import logging
import math
from pathlib import Path

import geopandas as gpd
from shapely.geometry import LineString, MultiPolygon, Polygon

from .models import StormPolygon, StormTrack

WGS84 = "EPSG:4326"

# (min sustained wind in kt, cone radius in degrees), strongest first
CONE_RADIUS_DEG = [
    (157, 1.2),  # Category 5
    (130, 1.0),  # Category 4
    (111, 0.8),  # Category 3
    (96, 0.6),   # Category 2
    (74, 0.5),   # Category 1
]
TROPICAL_STORM_RADIUS_DEG = 0.3


def cone_radius_deg(intensity_kt: float) -> float:
    for min_kt, radius in CONE_RADIUS_DEG:
        if intensity_kt >= min_kt:
            return radius
    return TROPICAL_STORM_RADIUS_DEG


def cone_from_center(name: str, lat: float, lon: float, intensity_kt: float, vertices: int = 32) -> StormPolygon:
    """Circular cone (in degrees) around the storm center, sized by intensity."""
    radius = cone_radius_deg(float(intensity_kt))
    coords = [
        (lon + radius * math.cos(2 * math.pi * i / vertices),
         lat + radius * math.sin(2 * math.pi * i / vertices))
        for i in range(vertices)
    ]
    logging.debug(f"[Storms] cone for {name} ({intensity_kt}kt) radius {radius}°")
    return StormPolygon.from_lonlat(name, coords)


# =============================================================================
# Vector layers
# =============================================================================

def _first_ring(geom) -> list:
    if isinstance(geom, MultiPolygon):
        geom = geom.geoms[0]
    return list(geom.exterior.coords)


def storms_from_frame(gdf: gpd.GeoDataFrame, name_column: str = "stormName") -> tuple[list[StormPolygon], list[StormTrack]]:
    """Polygon rows become cones, LineString rows become tracks; anything else is skipped."""
    if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs(WGS84)
    if name_column not in gdf.columns:
        raise ValueError(f"storm layer has no {name_column!r} column (have: {', '.join(map(str, gdf.columns))})")

    cones: list[StormPolygon] = []
    tracks: list[StormTrack] = []
    skipped = 0
    for name, geom in zip(gdf[name_column], gdf.geometry):
        if geom is None or geom.is_empty:
            skipped += 1
            continue
        if isinstance(geom, (Polygon, MultiPolygon)):
            cones.append(StormPolygon.from_lonlat(str(name), _first_ring(geom)))
        elif isinstance(geom, LineString):
            tracks.append(StormTrack.from_lonlat(str(name), list(geom.coords)))
        else:
            logging.warning(f"[Storms] skipping {geom.geom_type} feature for {name}")
            skipped += 1
    logging.info(f"[Storms] {len(cones)} cone(s), {len(tracks)} track(s), skipped {skipped}")
    return cones, tracks


def read_storm_layer(path: Path, name_column: str = "stormName") -> tuple[list[StormPolygon], list[StormTrack]]:
    logging.info(f"[I/O] reading storm layer: {path}")
    return storms_from_frame(gpd.read_file(path), name_column=name_column)


# =============================================================================
# Mock data
# =============================================================================

_MOCK_CONES = {
    "Hurricane Testing Large": [
        (-85.0, 20.0), (-75.0, 20.0), (-70.0, 25.0), (-68.0, 30.0),
        (-70.0, 35.0), (-75.0, 40.0), (-85.0, 40.0), (-90.0, 35.0),
        (-92.0, 30.0), (-90.0, 25.0), (-85.0, 20.0),
    ],
    "Hurricane Pacific Giant": [
        (-140.0, 10.0), (-120.0, 10.0), (-115.0, 15.0), (-112.0, 20.0),
        (-115.0, 25.0), (-120.0, 30.0), (-140.0, 30.0), (-145.0, 25.0),
        (-148.0, 20.0), (-145.0, 15.0), (-140.0, 10.0),
    ],
    "Hurricane Continental Test": [
        (-105.0, 25.0), (-80.0, 25.0), (-78.0, 30.0), (-75.0, 35.0),
        (-78.0, 40.0), (-85.0, 45.0), (-95.0, 48.0), (-105.0, 45.0),
        (-110.0, 40.0), (-108.0, 35.0), (-106.0, 30.0), (-105.0, 25.0),
    ],
}

_MOCK_TRACKS = {
    "Hurricane Testing Large": [
        (-95.0, 15.0), (-90.0, 18.0), (-85.0, 22.0), (-80.0, 26.0),
        (-75.0, 30.0), (-70.0, 34.0), (-65.0, 38.0), (-60.0, 42.0),
    ],
    "Hurricane Pacific Giant": [
        (-155.0, 5.0), (-150.0, 8.0), (-145.0, 12.0), (-140.0, 16.0),
        (-135.0, 20.0), (-130.0, 24.0), (-125.0, 28.0), (-120.0, 32.0),
    ],
    "Hurricane Continental Test": [
        (-115.0, 20.0), (-110.0, 25.0), (-105.0, 30.0), (-100.0, 35.0),
        (-95.0, 40.0), (-90.0, 45.0), (-85.0, 48.0), (-80.0, 50.0),
    ],
}


def mock_storms() -> tuple[list[StormPolygon], list[StormTrack]]:
    """Three oversized test storms covering the Atlantic, Pacific and continental US."""
    cones = [StormPolygon.from_lonlat(name, coords) for name, coords in _MOCK_CONES.items()]
    tracks = [StormTrack.from_lonlat(name, coords) for name, coords in _MOCK_TRACKS.items()]
    return cones, tracks
