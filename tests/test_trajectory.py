"""Tests for velocity estimation and future-intersection prediction"""
from dataclasses import replace
from datetime import timedelta

import pytest

from balloon_risk.models import IntersectionKind, StormTrack
from balloon_risk.trajectory import (
    ClosestApproach,
    closest_approach,
    estimate_velocity,
    predict_future_intersections,
    tracks_by_name,
    vector_convergence,
)

ONE_DEGREE_KM = 111.19492664455873


def _westward(lat, start_lon, n=5, step=0.1):
    """n hourly samples moving west by `step` degrees per hour, ending at start_lon - (n-1)*step."""
    return [(lat, start_lon - step * i) for i in range(n)]


@pytest.fixture
def far_cone(circle_cone):
    """Cone for storm "Test", nowhere near the equator."""
    return circle_cone("Test", 50.0, 50.0, 1.0)


class TestEstimateVelocity:
    """Tests for estimate_velocity"""

    def test_uses_last_window(self, make_trail):
        trail = make_trail([(0, 0), (0, 0), (0, 10), (0, 11), (0, 12), (0, 13), (0, 14)])
        v_lat, v_lon = estimate_velocity(trail, window=5)
        assert v_lat == pytest.approx(0.0)
        assert v_lon == pytest.approx(1.0)

    def test_mean_of_deltas(self, make_trail):
        v_lat, v_lon = estimate_velocity(make_trail([(0, 0), (1, 1), (1, 3)]))
        assert v_lat == pytest.approx(0.5)
        assert v_lon == pytest.approx(1.5)

    def test_too_few_deltas(self, make_trail):
        assert estimate_velocity(make_trail([(0, 0), (1, 1)])) is None


class TestVectorConvergence:
    """Tests for vector_convergence"""

    def test_heading_straight_at_track(self, meridian_track):
        assert vector_convergence(0.0, 3.0, 0.0, -0.1, meridian_track) == pytest.approx(1.0)

    def test_heading_away(self, meridian_track):
        assert vector_convergence(0.0, 3.0, 0.0, 0.1, meridian_track) == pytest.approx(-1.0)

    def test_perpendicular(self, meridian_track):
        assert vector_convergence(0.0, 3.0, 0.1, 0.0, meridian_track) == pytest.approx(0.0, abs=1e-9)

    def test_zero_velocity(self, meridian_track):
        assert vector_convergence(0.0, 3.0, 0.0, 0.0, meridian_track) == 0.0


class TestAcceptanceGate:
    """Each of the four conditions can veto a prediction on its own"""

    base = ClosestApproach(min_distance=50.0, hours=10.0, current_distance=300.0,
                           convergence=0.95, is_converging=True)

    def test_all_conditions_hold(self):
        assert self.base.will_intersect(100.0) is True

    def test_too_far(self):
        assert replace(self.base, min_distance=150.0).will_intersect(100.0) is False

    def test_threshold_is_inclusive(self):
        assert replace(self.base, min_distance=100.0).will_intersect(100.0) is True

    def test_weak_convergence(self):
        assert replace(self.base, convergence=0.5).will_intersect(100.0) is False

    def test_convergence_is_strict(self):
        assert replace(self.base, convergence=0.9).will_intersect(100.0) is False

    def test_not_converging(self):
        assert replace(self.base, is_converging=False).will_intersect(100.0) is False

    def test_not_enough_improvement(self):
        """min must beat 80% of the current distance"""
        assert replace(self.base, current_distance=60.0).will_intersect(100.0) is False


class TestClosestApproach:
    """Tests for the track scan"""

    def test_scan_finds_crossing(self, make_trail, meridian_track):
        last = make_trail(_westward(0.0, 3.4)).last
        approach = closest_approach(last, 0.0, -0.1, meridian_track)
        assert approach.hours == pytest.approx(30.0)
        assert approach.min_distance < 1.0
        assert approach.current_distance == pytest.approx(3 * ONE_DEGREE_KM, rel=1e-6)
        assert approach.is_converging is True

    def test_oblique_heading_fails_only_convergence(self, make_trail, meridian_track):
        """Heading NW toward the track: close, converging, but c ≈ 0.707"""
        trail = make_trail([(-0.4 + 0.1 * i, 3.4 - 0.1 * i) for i in range(5)])
        v_lat, v_lon = estimate_velocity(trail)
        approach = closest_approach(trail.last, v_lat, v_lon, meridian_track)

        assert approach.min_distance < 1.0
        assert approach.is_converging is True
        assert approach.convergence == pytest.approx(2 ** -0.5, rel=1e-3)
        assert approach.will_intersect(100.0) is False
        assert approach.will_intersect(100.0, convergence_min=0.5) is True


class TestPredictWithTrack:
    """Tests for predict_future_intersections when the storm has a track"""

    def test_converging_balloon(self, make_trail, far_cone, meridian_track, now):
        trail = make_trail(_westward(0.0, 3.4))
        found = predict_future_intersections(trail, far_cone, [meridian_track], 100.0, now)

        assert len(found) == 1
        x = found[0]
        assert x.kind is IntersectionKind.FUTURE
        assert x.hours_from_now == pytest.approx(30.0)
        assert x.timestamp == now + timedelta(hours=30)
        assert x.distance < 1.0
        assert x.inside_cone is False
        assert x.altitude == trail.last.altitude

    def test_diverging_balloon(self, make_trail, far_cone, meridian_track, now):
        """Moving east away from a track ~500 km off yields nothing"""
        trail = make_trail([(0.0, 4.1 + 0.1 * i) for i in range(5)])
        assert predict_future_intersections(trail, far_cone, [meridian_track], 100.0, now) == []

    def test_blocked_only_by_threshold(self, make_trail, far_cone, meridian_track, now):
        """Heading at the track but still ~578 km away after 48h"""
        trail = make_trail(_westward(0.0, 10.4))
        assert predict_future_intersections(trail, far_cone, [meridian_track], 100.0, now) == []

        found = predict_future_intersections(trail, far_cone, [meridian_track], 600.0, now)
        assert len(found) == 1
        assert found[0].hours_from_now == pytest.approx(48.0)
        assert found[0].distance == pytest.approx(5.2 * ONE_DEGREE_KM, rel=1e-6)

    def test_blocked_by_convergence(self, make_trail, far_cone, meridian_track, now):
        trail = make_trail([(-0.4 + 0.1 * i, 3.4 - 0.1 * i) for i in range(5)])
        assert predict_future_intersections(trail, far_cone, [meridian_track], 100.0, now) == []

    def test_tracks_by_mapping(self, make_trail, far_cone, meridian_track, now):
        trail = make_trail(_westward(0.0, 3.4))
        found = predict_future_intersections(trail, far_cone, {"Test": meridian_track}, 100.0, now)
        assert len(found) == 1


class TestPredictWithoutTrack:
    """Tests for the cone-distance fallback"""

    def test_first_hour_within_threshold(self, make_trail, circle_cone, now):
        """Slow westward approach to a 1° cone; first hour within 100 km is t=32"""
        cone = circle_cone("Lonely", 0.0, 0.0, 1.0)
        trail = make_trail(_westward(0.0, 5.4))
        found = predict_future_intersections(trail, cone, [], 100.0, now)

        assert len(found) == 1
        x = found[0]
        assert x.hours_from_now == 32.0
        assert x.distance == pytest.approx(0.8 * ONE_DEGREE_KM, rel=1e-6)
        assert x.inside_cone is True
        assert x.timestamp == now + timedelta(hours=32)

    def test_track_for_another_storm_is_ignored(self, make_trail, circle_cone, meridian_track, now):
        """Names must match exactly, otherwise the cone is used"""
        cone = circle_cone("test", 0.0, 0.0, 1.0)
        trail = make_trail(_westward(0.0, 5.4))
        found = predict_future_intersections(trail, cone, [meridian_track], 100.0, now)
        assert [x.hours_from_now for x in found] == [32.0]

    def test_never_reaches_cone(self, make_trail, circle_cone, now):
        cone = circle_cone("Lonely", 0.0, 0.0, 1.0)
        trail = make_trail([(0.0, 20.0 + 0.1 * i) for i in range(5)])
        assert predict_future_intersections(trail, cone, None, 100.0, now) == []


class TestPredictionPreconditions:
    """Too little history means no prediction"""

    def test_two_samples(self, make_trail, circle_cone, now):
        cone = circle_cone("Lonely", 0.0, 0.0, 1.0)
        trail = make_trail([(0.0, 1.2), (0.0, 1.1)])
        assert predict_future_intersections(trail, cone, [], 100.0, now) == []

    def test_empty_trail(self, make_trail, circle_cone, now):
        cone = circle_cone("Lonely", 0.0, 0.0, 1.0)
        assert predict_future_intersections(make_trail([]), cone, [], 100.0, now) == []


class TestTracksByName:
    """Tests for tracks_by_name"""

    def test_first_track_wins(self):
        a = StormTrack.from_lonlat("Ida", [(0, 0), (1, 1)])
        b = StormTrack.from_lonlat("Ida", [(5, 5), (6, 6)])
        c = StormTrack.from_lonlat("Kate", [(0, 0), (1, 0)])
        assert tracks_by_name([a, b, c]) == {"Ida": a, "Kate": c}
