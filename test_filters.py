"""Tests for accuracy filtering and distance segmentation."""

import copy

import pytest
from hamcrest import (assert_that, close_to, contains_exactly, empty,
                      equal_to, greater_than, has_length, is_,
                      less_than_or_equal_to)

from conftest import point
from track_viewer.filters import (LatLng, distance_between_coordinates,
                                  distance_travelled, filter_by_accuracy,
                                  flatten_to_points, location_history_count,
                                  segment_by_distance, segmentation_enabled)

# Roughly 111 m per 0.001 degree of latitude
BERLIN = LatLng(52.5200, 13.4050)
PARIS = LatLng(48.8566, 2.3522)


def track(*lats: float, lon: float = 13.0) -> list[dict]:
    """Points along a meridian, one second apart."""
    return [point(i, lat=lat, lon=lon) for i, lat in enumerate(lats)]


class TestDistance:
    """Tests for distance_between_coordinates."""

    def test_same_point(self) -> None:
        """Distance to itself is zero."""
        assert_that(distance_between_coordinates(BERLIN, BERLIN), equal_to(0.0))

    def test_berlin_paris(self) -> None:
        """Should match the known great-circle distance (~878 km)."""
        assert_that(distance_between_coordinates(BERLIN, PARIS), close_to(877_500, 2_000))

    def test_symmetric(self) -> None:
        """Distance does not depend on direction."""
        assert_that(
            distance_between_coordinates(BERLIN, PARIS),
            close_to(distance_between_coordinates(PARIS, BERLIN), 1e-6),
        )

    def test_one_millidegree_latitude(self) -> None:
        """0.001 degrees of latitude is about 111 m."""
        assert_that(
            distance_between_coordinates(LatLng(52.0, 13.0), LatLng(52.001, 13.0)),
            close_to(111.2, 0.5),
        )


class TestFilterByAccuracy:
    """Tests for filter_by_accuracy."""

    def test_none_threshold_is_identity(self) -> None:
        """A None threshold keeps every point in order."""
        history = {"alice": {"phone": [point(1, acc=500), point(2, acc=5), point(3)]}}
        assert_that(filter_by_accuracy(history, None), equal_to(history))

    def test_drops_inaccurate_points(self) -> None:
        """Points with acc above the threshold are removed."""
        history = {"alice": {"phone": [point(1, acc=50), point(2, acc=10), point(3, acc=11), point(4)]}}
        filtered = filter_by_accuracy(history, 10)
        assert_that([loc["tst"] for loc in filtered["alice"]["phone"]], equal_to([2, 4]))

    def test_all_remaining_within_threshold(self) -> None:
        """Every kept point has acc <= threshold or no acc."""
        history = {
            "alice": {"phone": [point(i, acc=a) for i, a in enumerate([3, 30, 300, None, 29.9, 30.1])]},
            "bob": {"car": [point(9, acc=1000)]},
        }
        filtered = filter_by_accuracy(history, 30)
        for devices in filtered.values():
            for locations in devices.values():
                for location in locations:
                    if location.get("acc") is not None:
                        assert_that(location["acc"], less_than_or_equal_to(30))
        assert_that(filtered["bob"]["car"], is_(empty()))

    def test_does_not_mutate_input(self) -> None:
        """The source history is left untouched."""
        history = {"alice": {"phone": [point(1, acc=50), point(2, acc=5)]}}
        original = copy.deepcopy(history)
        filter_by_accuracy(history, 10)
        assert_that(history, equal_to(original))


class TestFlattenToPoints:
    """Tests for flatten_to_points."""

    def test_depth_first_order(self) -> None:
        """Coordinates come user by user, device by device."""
        history = {
            "alice": {"phone": track(1.0, 2.0), "watch": track(3.0)},
            "bob": {"car": track(4.0)},
        }
        assert_that([c.lat for c in flatten_to_points(history)], equal_to([1.0, 2.0, 3.0, 4.0]))

    def test_skips_missing_coordinates(self) -> None:
        """Points without lat or lon are skipped; zero is a valid coordinate."""
        history = {"alice": {"phone": [
            point(1, lat=None), point(2, lon=None), point(3, lat=0.0, lon=0.0), {"tst": 4},
        ]}}
        assert_that(flatten_to_points(history), contains_exactly(LatLng(0.0, 0.0)))


class TestSegmentByDistance:
    """Tests for segment_by_distance."""

    @pytest.mark.parametrize("max_distance", [None, 0, -5])
    def test_disabled_gives_one_group(self, max_distance: float | None) -> None:
        """With splitting disabled each series is one group in original order."""
        locations = track(52.0, 53.0, 52.0, 60.0)
        groups = segment_by_distance({"alice": {"phone": locations}}, max_distance)
        assert_that(groups, has_length(1))
        assert_that([c.lat for c in groups[0]], equal_to([52.0, 53.0, 52.0, 60.0]))

    def test_splits_on_large_gap(self) -> None:
        """A jump larger than the threshold starts a new group."""
        locations = track(52.0, 52.0005, 52.001, 52.1, 52.1005)
        groups = segment_by_distance({"alice": {"phone": locations}}, 200)
        assert_that([[c.lat for c in g] for g in groups], equal_to([[52.0, 52.0005, 52.001], [52.1, 52.1005]]))

    def test_group_boundaries(self) -> None:
        """Inside groups steps are <= T; across boundaries they are > T."""
        threshold = 500.0
        lats = [52.0, 52.002, 52.004, 52.02, 52.021, 52.05, 52.0505, 52.06]
        groups = segment_by_distance({"alice": {"phone": track(*lats)}}, threshold)

        for group in groups:
            for a, b in zip(group, group[1:]):
                assert_that(distance_between_coordinates(a, b), less_than_or_equal_to(threshold))
        for previous, following in zip(groups, groups[1:]):
            assert_that(distance_between_coordinates(previous[-1], following[0]), greater_than(threshold))
        assert_that(sum(len(g) for g in groups), equal_to(len(lats)))

    def test_one_group_per_series(self) -> None:
        """Empty and singleton series each contribute one group; devices never merge."""
        history = {
            "alice": {"phone": track(52.0, 52.0001), "watch": []},
            "bob": {"car": track(52.0002)},
        }
        groups = segment_by_distance(history, 1_000_000)
        assert_that([len(g) for g in groups], equal_to([2, 0, 1]))

    def test_empty_history(self) -> None:
        """No series means no groups."""
        assert_that(segment_by_distance({}, 100), equal_to([]))


class TestHelpers:
    """Tests for the small helpers."""

    @pytest.mark.parametrize("value,expected", [(None, False), (0, False), (-1, False), (True, False), (0.5, True), (100, True)])
    def test_segmentation_enabled(self, value: object, expected: bool) -> None:
        """Only positive numbers enable segmentation."""
        assert_that(segmentation_enabled(value), equal_to(expected))  # type: ignore[arg-type]

    def test_location_history_count(self) -> None:
        """Counts points across users and devices."""
        history = {"alice": {"phone": track(1.0, 2.0), "watch": []}, "bob": {"car": track(3.0)}}
        assert_that(location_history_count(history), equal_to(3))

    def test_distance_travelled_ignores_gaps(self) -> None:
        """Distance is summed inside groups only."""
        a, b = LatLng(52.0, 13.0), LatLng(52.001, 13.0)
        single = distance_between_coordinates(a, b)
        assert_that(distance_travelled([[a, b], [BERLIN], [a, b]]), close_to(2 * single, 1e-6))
