"""Moon visibility curve: turns a day's discrete rise/set times into a sinusoid.

The plot spans one 1440-minute day, so the curve is a cosine with a 1440-minute
period (4 minutes per degree). For a rise/set pair the cosine is centred on the
peak and shifted down by ``y_offset`` so that it crosses zero exactly at the
rise and at the set. A real lunar day is about 1490 minutes, so anchors taken
from the previous day are nudged by the ``CurveCorrections`` tunables.
"""

import logging
import math
from dataclasses import dataclass

from moonbuilder.errors import DataUnavailable, IncompleteCase, UnclassifiableDay
from moonbuilder.models import (
    MINUTES_PER_DAY,
    MINUTES_PER_DEGREE,
    CurveModel,
    CurveSegment,
    EventCase,
    Neighbor,
    RiseSetRecord,
)

log = logging.getLogger(__name__)

DEFAULT_AMPLITUDE = 150.0

_REQUIRED: dict[EventCase, frozenset[Neighbor]] = {
    EventCase.RISE_THEN_SET: frozenset(),
    EventCase.SET_THEN_RISE: frozenset({Neighbor.PREVIOUS}),
    EventCase.RISE_ONLY: frozenset({Neighbor.PREVIOUS, Neighbor.NEXT}),
    EventCase.SET_ONLY: frozenset({Neighbor.PREVIOUS}),
}


@dataclass(frozen=True)
class CurveCorrections:
    """Empirical shifts (minutes) added to a rise taken from the previous day.

    Neither value is derived. Without them the curve crosses the axis too
    early. ``set_then_rise`` folds in the ~50 minute daily drift of moonrise.
    """

    set_then_rise: float = 70.0
    set_only: float = 10.0


def classify(record: RiseSetRecord) -> EventCase:
    """Decide which of the four event orders ``record`` shows.

    Raises:
        UnclassifiableDay: Neither a moonrise nor a moonset is present.
    """
    rise, set_ = record.moonrise, record.moonset
    if rise is not None and set_ is not None:
        return EventCase.SET_THEN_RISE if set_ < rise else EventCase.RISE_THEN_SET
    if rise is not None:
        return EventCase.RISE_ONLY
    if set_ is not None:
        return EventCase.SET_ONLY
    raise UnclassifiableDay(f"No moonrise or moonset on {record.day}")


def required_neighbors(case: EventCase) -> frozenset[Neighbor]:
    """Neighbouring days whose records ``build_curve`` needs for ``case``."""
    return _REQUIRED[case]


def solve_segment(
    rise: float,
    set_: float,
    amplitude: float,
    start: float,
    end: float,
) -> CurveSegment:
    """Solve peak and vertical offset so the curve is zero at ``rise`` and ``set_``.

    A ``set_`` earlier than ``rise`` means the visible arc runs forward from
    the rise, through midnight, to the set one period later.
    """
    visible = set_ - rise if set_ >= rise else set_ + MINUTES_PER_DAY - rise
    peak = rise + visible / 2
    x_offset = rise - (peak - MINUTES_PER_DAY / 4)
    y_offset = amplitude * math.sin(math.radians(x_offset / MINUTES_PER_DEGREE))
    return CurveSegment(
        start=start,
        end=end,
        rise=rise,
        set=set_,
        peak=peak,
        amplitude=amplitude,
        y_offset=y_offset,
    )


def _whole_day(rise: float, set_: float, amplitude: float) -> CurveSegment:
    return solve_segment(
        rise, set_, amplitude, start=min(rise, 0), end=max(set_, MINUTES_PER_DAY)
    )


def _need(
    record: RiseSetRecord | None, neighbor: Neighbor, case: EventCase
) -> RiseSetRecord:
    if record is None:
        raise DataUnavailable(f"{case.value}: needs the {neighbor.value} day's record")
    return record


def _field(value: int | None, what: str, record: RiseSetRecord, case: EventCase) -> int:
    if value is None:
        raise IncompleteCase(f"{case.value}: no {what} on {record.day}")
    return value


def build_curve(
    current: RiseSetRecord,
    previous: RiseSetRecord | None = None,
    following: RiseSetRecord | None = None,
    *,
    amplitude: float = DEFAULT_AMPLITUDE,
    corrections: CurveCorrections = CurveCorrections(),
) -> CurveModel:
    """Classify the target day and solve its curve segment(s).

    Args:
        current: Record for the day being plotted.
        previous: Record for the day before; needed for every case except
            rise-then-set.
        following: Record for the day after; needed only for rise-only.
        amplitude: Curve height in chart units.
        corrections: Tunable shifts for rises anchored to the previous day.

    Returns:
        CurveModel with one segment, or two contiguous segments for rise-only.

    Raises:
        UnclassifiableDay: ``current`` has neither moonrise nor moonset.
        DataUnavailable: A neighbour the case needs was not supplied.
        IncompleteCase: A supplied neighbour lacks the needed rise/set.
    """
    case = classify(current)
    log.debug(
        "%s: %s (rise=%s set=%s)",
        current.day,
        case.value,
        current.moonrise,
        current.moonset,
    )

    if case is EventCase.RISE_THEN_SET:
        segments = (_whole_day(current.moonrise, current.moonset, amplitude),)

    elif case is EventCase.SET_THEN_RISE:
        prev = _need(previous, Neighbor.PREVIOUS, case)
        prev_rise = _field(prev.moonrise, "moonrise", prev, case)
        rise = prev_rise - MINUTES_PER_DAY + corrections.set_then_rise
        segments = (_whole_day(rise, current.moonset, amplitude),)

    elif case is EventCase.RISE_ONLY:
        prev = _need(previous, Neighbor.PREVIOUS, case)
        nxt = _need(following, Neighbor.NEXT, case)
        prev_set = _field(prev.moonset, "moonset", prev, case) - MINUTES_PER_DAY
        next_set = _field(nxt.moonset, "moonset", nxt, case) + MINUTES_PER_DAY
        rise = current.moonrise
        segments = (
            solve_segment(rise, prev_set, amplitude, start=prev_set, end=rise),
            solve_segment(rise, next_set, amplitude, start=rise, end=next_set),
        )

    else:
        prev = _need(previous, Neighbor.PREVIOUS, case)
        prev_rise = _field(prev.moonrise, "moonrise", prev, case)
        rise = prev_rise - MINUTES_PER_DAY + corrections.set_only
        segments = (_whole_day(rise, current.moonset, amplitude),)

    for segment in segments:
        log.debug(
            "segment [%s, %s]: rise=%s set=%s peak=%s y_offset=%.3f",
            segment.start,
            segment.end,
            segment.rise,
            segment.set,
            segment.peak,
            segment.y_offset,
        )
    return CurveModel(case=case, segments=segments)
