"""Data model definitions: boundaries between the fetch, curve, and render layers."""

import enum
import math
from dataclasses import dataclass
from datetime import date

import numpy as np

MINUTES_PER_DAY = 24 * 60
MINUTES_PER_DEGREE = 4  # plotted cosine covers 360° over one 1440-minute day


class PhaseName(str, enum.Enum):
    """Eight named phases of the moon."""

    NEW_MOON = "New Moon"
    WAXING_CRESCENT = "Waxing Crescent"
    FIRST_QUARTER = "First Quarter"
    WAXING_GIBBOUS = "Waxing Gibbous"
    FULL_MOON = "Full Moon"
    WANING_GIBBOUS = "Waning Gibbous"
    LAST_QUARTER = "Last Quarter"
    WANING_CRESCENT = "Waning Crescent"


class WaxWane(str, enum.Enum):
    WAXING = "waxing"
    WANING = "waning"


class EventCase(str, enum.Enum):
    """Order of moon events within the target calendar day."""

    RISE_THEN_SET = "rise-then-set"
    SET_THEN_RISE = "set-then-rise"
    RISE_ONLY = "rise-only"
    SET_ONLY = "set-only"


class Neighbor(str, enum.Enum):
    PREVIOUS = "previous"
    NEXT = "next"


@dataclass(frozen=True)
class MoonTarget:
    """One (location, date) to render."""

    location: str  # Display name for the title ("Onset, MA")
    lat: float  # Latitude (decimal degrees)
    lon: float  # Longitude (decimal degrees, negative for west)
    day: date  # Local calendar date
    timezone: str  # IANA zone ("America/New_York")


@dataclass(frozen=True)
class RiseSetRecord:
    """Sun and moon horizon crossings for one calendar day.

    Every time is minutes after local midnight in [0, 1440). None means the
    event does not happen on that day.
    """

    day: date
    sunrise: int | None = None
    sunset: int | None = None
    moonrise: int | None = None
    moonset: int | None = None


@dataclass(frozen=True)
class LunarPhase:
    """Moon age and derived phase metadata for a date."""

    age_days: float  # [0, synodic period)
    illumination_percent: int  # 0..100
    phase_name: PhaseName
    wax_wane: WaxWane
    bucket: int  # 0..15, one sixteenth of the cycle each (icon index)


@dataclass(frozen=True)
class CurveSegment:
    """A time-bounded piece of the visibility curve with its own phase parameters.

    ``start``/``end`` live on an extended minute axis: negative values are on
    the previous day, values above 1440 on the next day.
    """

    start: float
    end: float
    rise: float
    set: float
    peak: float
    amplitude: float
    y_offset: float

    def y(self, t: float) -> float:
        """Height of the curve at minute ``t``; zero at ``rise`` and ``set``."""
        return (
            self.amplitude
            * math.cos(math.radians((t - self.peak) / MINUTES_PER_DEGREE))
            - self.y_offset
        )

    def sample(self, t: np.ndarray) -> np.ndarray:
        """Vectorized ``y`` over an array of minutes."""
        return (
            self.amplitude * np.cos(np.radians((t - self.peak) / MINUTES_PER_DEGREE))
            - self.y_offset
        )

    def contains(self, t: float) -> bool:
        return self.start <= t <= self.end


@dataclass(frozen=True)
class CurveModel:
    """Resolved curve for one render: the case plus one or two segments."""

    case: EventCase
    segments: tuple[CurveSegment, ...]

    def segment_at(self, minute: float) -> CurveSegment:
        """Return the segment whose range holds ``minute``.

        Ranges of consecutive segments share an endpoint; the earlier segment
        wins there. Minutes outside every range map to the nearest segment.
        """
        for segment in self.segments:
            if segment.contains(minute):
                return segment
        return min(
            self.segments,
            key=lambda s: min(abs(minute - s.start), abs(minute - s.end)),
        )


@dataclass(frozen=True)
class RenderedChart:
    """Final RGBA raster. Owned by the renderer until exported."""

    width: int
    height: int
    pixels: np.ndarray  # uint8, shape (height, width, 4)


@dataclass(frozen=True)
class MoonChartResult:
    """Everything one render produced."""

    target: MoonTarget
    record: RiseSetRecord
    phase: LunarPhase
    curve: CurveModel
    chart: RenderedChart
