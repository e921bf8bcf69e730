"""Shared fixtures: a fixed analysis time and small trail / storm builders."""
import math
from datetime import datetime, timedelta, timezone

import pytest

from balloon_risk.models import BalloonSample, BalloonTrail, StormPolygon, StormTrack

NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_trail():
    """Hourly trail from [(lat, lon), ...]; the last sample is stamped `end`."""
    def _make(points, balloon_id="balloon-0001", end=NOW, altitude=18_000.0):
        n = len(points)
        samples = tuple(
            BalloonSample(
                lat=float(lat), lon=float(lon), altitude=altitude,
                timestamp=end - timedelta(hours=n - 1 - i), balloon_id=balloon_id,
            )
            for i, (lat, lon) in enumerate(points)
        )
        return BalloonTrail(balloon_id=balloon_id, samples=samples)
    return _make


@pytest.fixture
def circle_cone():
    """Circular cone in degrees; vertex 0 sits due east of the center."""
    def _make(name, lat, lon, radius_deg, vertices=64):
        coords = [
            (lon + radius_deg * math.cos(2 * math.pi * i / vertices),
             lat + radius_deg * math.sin(2 * math.pi * i / vertices))
            for i in range(vertices)
        ]
        return StormPolygon.from_lonlat(name, coords)
    return _make


@pytest.fixture
def square_cone():
    """lon -1..1, lat -1..1."""
    return StormPolygon.from_lonlat(
        "Square", [(-1, -1), (1, -1), (1, 1), (-1, 1), (-1, -1)]
    )


@pytest.fixture
def meridian_track():
    """Track along lon 0 from 10S to 10N."""
    return StormTrack.from_lonlat("Test", [(0.0, -10.0), (0.0, 10.0)])
