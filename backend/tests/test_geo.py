"""Tests for the distance and bounding-box helpers."""

import pytest

from meetnear.geo import bounding_box, haversine_m

from helpers import HERE


def test_same_point_is_zero():
    assert haversine_m(HERE[0], HERE[1], HERE[0], HERE[1]) == 0.0


def test_one_degree_of_latitude():
    # ~111.2 km on a 6371 km sphere
    assert haversine_m(0, 0, 0, 1) == pytest.approx(111195, rel=1e-3)


def test_box_contains_radius():
    box = bounding_box(HERE[0], HERE[1], 1000)
    assert box.min_lat < HERE[1] < box.max_lat
    assert box.min_lng < HERE[0] < box.max_lng
    assert not box.wraps
    # the north edge sits exactly one radius away
    assert haversine_m(HERE[0], HERE[1], HERE[0], box.max_lat) == pytest.approx(1000, rel=1e-6)


def test_box_wraps_antimeridian():
    box = bounding_box(179.999, 0, 5000)
    assert box.wraps


def test_box_near_pole_spans_all_longitudes():
    box = bounding_box(10, 89.99, 5000)
    assert box.max_lat == 90
    assert (box.min_lng, box.max_lng) == (-180, 180)
