"""Lunar cycle arithmetic: moon age, illumination, and phase from a calendar date.

Age comes from a linear count of days since a reference new moon, not from an
ephemeris. That is accurate to within about a day, which is all the chart needs.
"""

import math
from datetime import date

from moonbuilder.models import LunarPhase, PhaseName, WaxWane

MOON_PERIOD_DAYS = 29.53058770576  # Synodic month
UNIX_EPOCH_JD = 2440587.5  # 1970-01-01T00:00Z as a Julian day
LUNAR_REFERENCE_JD = 2451550.1  # New moon of 2000-01-06
PHASE_BUCKETS = 16

_EPOCH = date(1970, 1, 1)

# New Moon straddles the wrap, so it owns the first and the last bucket.
_BUCKET_PHASES: tuple[PhaseName, ...] = (
    PhaseName.NEW_MOON,
    PhaseName.WAXING_CRESCENT,
    PhaseName.WAXING_CRESCENT,
    PhaseName.FIRST_QUARTER,
    PhaseName.FIRST_QUARTER,
    PhaseName.WAXING_GIBBOUS,
    PhaseName.WAXING_GIBBOUS,
    PhaseName.FULL_MOON,
    PhaseName.FULL_MOON,
    PhaseName.WANING_GIBBOUS,
    PhaseName.WANING_GIBBOUS,
    PhaseName.LAST_QUARTER,
    PhaseName.LAST_QUARTER,
    PhaseName.WANING_CRESCENT,
    PhaseName.WANING_CRESCENT,
    PhaseName.NEW_MOON,
)


def julian_day(day: date) -> float:
    """Julian day number at local midnight of ``day``."""
    return (day - _EPOCH).days + UNIX_EPOCH_JD


def age_days(day: date) -> float:
    """Days since the most recent new moon, in [0, MOON_PERIOD_DAYS)."""
    age = math.fmod(julian_day(day) - LUNAR_REFERENCE_JD, MOON_PERIOD_DAYS)
    if age < 0:
        age += MOON_PERIOD_DAYS
    return age


def illumination_percent(age: float) -> int:
    """Illuminated percentage of the disc, 0 at new moon and 100 at full moon."""
    angle = age / MOON_PERIOD_DAYS * 360 + 180
    return round(50 + 50 * math.cos(math.radians(angle)))


def wax_wane(age: float) -> WaxWane:
    return WaxWane.WAXING if age < MOON_PERIOD_DAYS / 2 else WaxWane.WANING


def phase_bucket(age: float) -> int:
    """Index 0..15 of the sixteenth of the cycle holding ``age``."""
    bucket = int(age // (MOON_PERIOD_DAYS / PHASE_BUCKETS))
    return max(0, min(PHASE_BUCKETS - 1, bucket))


def phase_name(age: float) -> PhaseName:
    return _BUCKET_PHASES[phase_bucket(age)]


def lunar_phase(day: date) -> LunarPhase:
    """Compute all phase metadata for ``day``."""
    age = age_days(day)
    return LunarPhase(
        age_days=age,
        illumination_percent=illumination_percent(age),
        phase_name=phase_name(age),
        wax_wane=wax_wane(age),
        bucket=phase_bucket(age),
    )
