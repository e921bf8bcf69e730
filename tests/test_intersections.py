"""Tests for past / future intersection classification"""
from datetime import timedelta

import pytest

from balloon_risk.intersections import analyze_intersections, classify_intersections
from balloon_risk.models import IntersectionKind, StormTrack

PAST = IntersectionKind.PAST
FUTURE = IntersectionKind.FUTURE


@pytest.fixture
def mixed_trail(make_trail, now):
    """Samples at now-3h .. now+1h: far, inside, near, inside (at now), inside."""
    return make_trail(
        [(0.0, 5.0), (0.0, 0.0), (0.0, 1.5), (0.0, 0.2), (0.0, 0.5)],
        end=now + timedelta(hours=1),
    )


class TestClassifyIntersections:
    """Tests for classify_intersections"""

    def test_one_per_qualifying_sample(self, mixed_trail, square_cone, now):
        found = classify_intersections([mixed_trail], [square_cone], now, 100.0)

        assert [x.hours_from_now for x in found] == [-2.0, -1.0, 0.0, 1.0]
        assert [x.kind for x in found] == [PAST, PAST, PAST, FUTURE]
        assert [x.inside_cone for x in found] == [True, False, True, True]
        assert found[1].distance == pytest.approx(0.5 * 111.19492664455873, rel=1e-6)

    def test_sample_at_now_is_past(self, mixed_trail, square_cone, now):
        found = classify_intersections([mixed_trail], [square_cone], now, 100.0)
        at_now = [x for x in found if x.timestamp == now]
        assert len(at_now) == 1
        assert at_now[0].kind is PAST

    def test_partition(self, mixed_trail, square_cone, now):
        """Every intersection is exactly one of past / future"""
        found = classify_intersections([mixed_trail], [square_cone], now, 100.0)
        past = [x for x in found if x.kind is PAST]
        future = [x for x in found if x.kind is FUTURE]
        assert len(past) + len(future) == len(found)
        assert all(x.hours_from_now <= 0 for x in past)
        assert all(x.hours_from_now > 0 for x in future)

    def test_no_deduplication(self, make_trail, square_cone, now):
        """A trail sitting inside the cone yields one record per sample"""
        trail = make_trail([(0.0, 0.0)] * 4)
        assert len(classify_intersections([trail], [square_cone], now, 100.0)) == 4


class TestAnalyzeIntersections:
    """Tests for analyze_intersections"""

    def test_history_plus_prediction_sorted(self, mixed_trail, square_cone, now):
        found = analyze_intersections([mixed_trail], [square_cone], [], now, 100.0)

        hours = [x.hours_from_now for x in found]
        assert hours == sorted(hours)
        assert len(found) == 5
        predicted = found[-1]
        assert predicted.kind is FUTURE
        assert predicted.hours_from_now == 1.0
        assert predicted.inside_cone is True
        assert predicted.timestamp == now + timedelta(hours=1)

    def test_thread_pool_matches_sequential(self, make_trail, square_cone, circle_cone, now):
        """Fan-out over pairs does not change the result"""
        trails = [
            make_trail([(0.0, 5.0 - 0.5 * i) for i in range(6)], balloon_id="west"),
            make_trail([(0.0, 0.0)] * 3, balloon_id="parked"),
            make_trail([(2.0, 2.0), (2.1, 2.1), (2.2, 2.2)], balloon_id="drift"),
        ]
        storms = [square_cone, circle_cone("Round", 1.0, 3.0, 1.5)]
        tracks = [StormTrack.from_lonlat("Round", [(3.0, -5.0), (3.0, 5.0)])]

        sequential = analyze_intersections(trails, storms, tracks, now, 100.0)
        threaded = analyze_intersections(trails, storms, tracks, now, 100.0, max_workers=4)
        assert threaded == sequential
        assert sequential

    def test_no_storms(self, mixed_trail, now):
        assert analyze_intersections([mixed_trail], [], [], now) == []
