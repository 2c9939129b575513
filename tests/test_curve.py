from datetime import date

import pytest

from moonbuilder.curve import (
    CurveCorrections,
    build_curve,
    classify,
    required_neighbors,
    solve_segment,
)
from moonbuilder.errors import DataUnavailable, IncompleteCase, UnclassifiableDay
from moonbuilder.models import EventCase, Neighbor, RiseSetRecord

AMPLITUDE = 150.0
TOL = 1e-6 * AMPLITUDE

DAY = date(2024, 1, 10)
PREV = date(2024, 1, 9)
NEXT = date(2024, 1, 11)


def _assert_zero_at_endpoints(segment):
    assert abs(segment.y(segment.rise)) < TOL
    assert abs(segment.y(segment.set)) < TOL


@pytest.mark.parametrize(
    "rise,set_,expected",
    [
        (360, 1080, EventCase.RISE_THEN_SET),
        (1080, 1080, EventCase.RISE_THEN_SET),
        (1330, 365, EventCase.SET_THEN_RISE),
        (75, None, EventCase.RISE_ONLY),
        (None, 330, EventCase.SET_ONLY),
    ],
)
def test_classify(rise, set_, expected):
    record = RiseSetRecord(day=DAY, moonrise=rise, moonset=set_)
    assert classify(record) is expected


def test_classify_neither_fails():
    with pytest.raises(UnclassifiableDay):
        classify(RiseSetRecord(day=DAY, sunrise=420, sunset=990))


def test_required_neighbors():
    assert required_neighbors(EventCase.RISE_THEN_SET) == frozenset()
    assert required_neighbors(EventCase.SET_THEN_RISE) == {Neighbor.PREVIOUS}
    assert required_neighbors(EventCase.RISE_ONLY) == {
        Neighbor.PREVIOUS,
        Neighbor.NEXT,
    }
    assert required_neighbors(EventCase.SET_ONLY) == {Neighbor.PREVIOUS}


@pytest.mark.parametrize(
    "rise,set_",
    [(360, 1080), (0, 1439), (-70, 365), (5, 330), (75, -20), (75, 1490), (600, 610)],
)
def test_solved_segment_crosses_zero_at_rise_and_set(rise, set_):
    segment = solve_segment(
        rise, set_, AMPLITUDE, start=min(rise, set_), end=max(rise, set_)
    )
    _assert_zero_at_endpoints(segment)


def test_rise_then_set_single_segment():
    curve = build_curve(RiseSetRecord(day=DAY, moonrise=360, moonset=1080))

    assert curve.case is EventCase.RISE_THEN_SET
    assert len(curve.segments) == 1
    segment = curve.segments[0]
    assert segment.peak == 720
    assert (segment.start, segment.end) == (0, 1440)
    _assert_zero_at_endpoints(segment)
    assert segment.y(720) == pytest.approx(AMPLITUDE)
    assert segment.y(100) < 0
    assert segment.y(1200) < 0


def test_set_then_rise_anchors_to_previous_rise():
    current = RiseSetRecord(day=DAY, moonrise=1330, moonset=365)
    previous = RiseSetRecord(day=PREV, moonrise=1300, moonset=330)

    curve = build_curve(current, previous)

    assert curve.case is EventCase.SET_THEN_RISE
    assert len(curve.segments) == 1
    segment = curve.segments[0]
    assert segment.rise == 1300 - 1440 + 70
    assert segment.set == 365
    assert segment.start == segment.rise
    assert segment.end == 1440
    _assert_zero_at_endpoints(segment)
    assert segment.y(0) > 0


def test_rise_only_builds_two_contiguous_segments():
    current = RiseSetRecord(day=DAY, moonrise=75)
    previous = RiseSetRecord(day=PREV, moonrise=23, moonset=1420)
    following = RiseSetRecord(day=NEXT, moonrise=130, moonset=50)

    curve = build_curve(current, previous, following)

    assert curve.case is EventCase.RISE_ONLY
    before, after = curve.segments
    assert (before.start, before.end) == (1420 - 1440, 75)
    assert (after.start, after.end) == (75, 1440 + 50)
    assert before.set == -20
    assert after.set == 1490
    for segment in curve.segments:
        assert segment.rise == 75
        _assert_zero_at_endpoints(segment)

    # Between the previous set and the rise the moon is below the horizon.
    assert before.y(27.5) < 0
    assert after.y(after.peak) > 0
    assert curve.segment_at(120) is after
    assert curve.segment_at(30) is before


def test_set_only_anchors_to_previous_rise():
    current = RiseSetRecord(day=DAY, moonset=330)
    previous = RiseSetRecord(day=PREV, moonrise=1435, moonset=290)

    curve = build_curve(current, previous)

    assert curve.case is EventCase.SET_ONLY
    segment = curve.segments[0]
    assert segment.rise == 1435 - 1440 + 10
    assert segment.set == 330
    _assert_zero_at_endpoints(segment)


def test_corrections_are_tunable():
    current = RiseSetRecord(day=DAY, moonrise=1330, moonset=365)
    previous = RiseSetRecord(day=PREV, moonrise=1300)

    curve = build_curve(
        current,
        previous,
        amplitude=80,
        corrections=CurveCorrections(set_then_rise=50, set_only=0),
    )

    segment = curve.segments[0]
    assert segment.rise == 1300 - 1440 + 50
    assert segment.amplitude == 80
    assert abs(segment.y(segment.rise)) < 1e-6 * 80


def test_neither_rise_nor_set_fails():
    with pytest.raises(UnclassifiableDay):
        build_curve(
            RiseSetRecord(day=DAY),
            RiseSetRecord(day=PREV, moonrise=100, moonset=800),
            RiseSetRecord(day=NEXT, moonrise=200, moonset=900),
        )


def test_missing_neighbor_record_is_data_unavailable():
    with pytest.raises(DataUnavailable):
        build_curve(RiseSetRecord(day=DAY, moonset=330))
    with pytest.raises(DataUnavailable):
        build_curve(
            RiseSetRecord(day=DAY, moonrise=75),
            RiseSetRecord(day=PREV, moonset=1420),
        )


def test_neighbor_without_needed_field_is_incomplete():
    with pytest.raises(IncompleteCase):
        build_curve(
            RiseSetRecord(day=DAY, moonrise=1330, moonset=365),
            RiseSetRecord(day=PREV, moonset=330),
        )
    with pytest.raises(IncompleteCase):
        build_curve(
            RiseSetRecord(day=DAY, moonrise=75),
            RiseSetRecord(day=PREV, moonset=1420),
            RiseSetRecord(day=NEXT, moonrise=130),
        )


def test_unneeded_neighbors_are_ignored():
    record = RiseSetRecord(day=DAY, moonrise=360, moonset=1080)
    curve = build_curve(record, None, None)
    assert len(curve.segments) == 1


def test_segment_at_outside_all_ranges_picks_nearest():
    curve = build_curve(
        RiseSetRecord(day=DAY, moonrise=75),
        RiseSetRecord(day=PREV, moonset=1420),
        RiseSetRecord(day=NEXT, moonset=50),
    )
    assert curve.segment_at(-100) is curve.segments[0]
    assert curve.segment_at(2000) is curve.segments[1]
