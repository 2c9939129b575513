"""Render pipeline: fetch records, solve the curve, draw, and write images."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path

from pytz import timezone as pytz_timezone

from moonbuilder.astronomy import AstronomyDataSource
from moonbuilder.curve import (
    DEFAULT_AMPLITUDE,
    CurveCorrections,
    build_curve,
    classify,
    required_neighbors,
)
from moonbuilder.errors import DataUnavailable, MoonChartError
from moonbuilder.lunar import lunar_phase
from moonbuilder.models import MoonChartResult, MoonTarget, Neighbor, RiseSetRecord
from moonbuilder.renderers.raster import ChartStyle, render_chart, save_chart

log = logging.getLogger(__name__)


def minute_of_day(now: datetime | None, tz_name: str) -> int:
    """Minutes after local midnight in ``tz_name``; naive ``now`` is local there."""
    tz = pytz_timezone(tz_name)
    if now is None:
        local_now = datetime.now(tz)
    elif now.tzinfo is None:
        local_now = tz.localize(now)
    else:
        local_now = now.astimezone(tz)
    return local_now.hour * 60 + local_now.minute


def fetch_records(
    source: AstronomyDataSource, target: MoonTarget
) -> tuple[RiseSetRecord, RiseSetRecord | None, RiseSetRecord | None]:
    """Fetch the target day and both neighbours concurrently.

    A neighbour that fails comes back as None; whether that matters depends on
    the case, which is decided later.

    Raises:
        DataUnavailable: The target day's own record could not be fetched.
    """
    days = (target.day, target.day - timedelta(days=1), target.day + timedelta(days=1))
    with ThreadPoolExecutor(max_workers=3) as pool:
        futures = [
            pool.submit(source.get, target.lat, target.lon, d, target.timezone)
            for d in days
        ]
        current = futures[0].result()
        neighbors: list[RiseSetRecord | None] = []
        for day, future in zip(days[1:], futures[1:]):
            try:
                neighbors.append(future.result())
            except DataUnavailable as e:
                log.warning("%s: neighbour %s unavailable: %s", target.location, day, e)
                neighbors.append(None)
    return current, neighbors[0], neighbors[1]


def render_moon_chart(
    target: MoonTarget,
    source: AstronomyDataSource,
    *,
    now: datetime | None = None,
    amplitude: float = DEFAULT_AMPLITUDE,
    corrections: CurveCorrections = CurveCorrections(),
    style: ChartStyle = ChartStyle(),
    icon_dir: Path | str | None = None,
    lang: str = "en",
) -> MoonChartResult:
    """Top-level entry point: produce the chart for one (location, date).

    Args:
        target: Location and date to render.
        source: Where rise/set records come from.
        now: Instant for the "moon now" marker. Defaults to the current time
            in the target's timezone. A naive value is read as local time in
            the target's timezone.
        amplitude: Curve height in pixels.
        corrections: Curve anchor tunables.
        style: Chart layout.
        icon_dir: Phase icon directory.
        lang: Language for chart text.

    Returns:
        MoonChartResult with phase, curve, and pixels.

    Raises:
        MoonChartError: Any fatal condition; nothing is rendered.
    """
    current, previous, following = fetch_records(source, target)
    case = classify(current)
    needed = required_neighbors(case)
    log.info(
        "%s %s: %s, needs %s",
        target.location,
        target.day,
        case.value,
        sorted(n.value for n in needed) or "no neighbours",
    )
    curve = build_curve(
        current,
        previous if Neighbor.PREVIOUS in needed else None,
        following if Neighbor.NEXT in needed else None,
        amplitude=amplitude,
        corrections=corrections,
    )
    phase = lunar_phase(target.day)

    now_minute = minute_of_day(now, target.timezone)

    chart = render_chart(
        target.location,
        current,
        phase,
        curve,
        now_minute,
        style=style,
        icon_dir=icon_dir,
        lang=lang,
    )
    return MoonChartResult(
        target=target, record=current, phase=phase, curve=curve, chart=chart
    )


class MoonBuilder:
    """Batch wrapper: one image per call, failures logged and contained.

    Args:
        source: Shared astronomy data source.
        image_dir: Directory receiving the JPEG files.
        amplitude: Curve height in pixels.
        corrections: Curve anchor tunables.
        icon_dir: Phase icon directory.
        lang: Language for chart text.
    """

    def __init__(
        self,
        source: AstronomyDataSource,
        image_dir: Path | str,
        *,
        amplitude: float = DEFAULT_AMPLITUDE,
        corrections: CurveCorrections = CurveCorrections(),
        icon_dir: Path | str | None = None,
        lang: str = "en",
    ):
        self._source = source
        self._image_dir = Path(image_dir)
        self._amplitude = amplitude
        self._corrections = corrections
        self._icon_dir = icon_dir
        self._lang = lang

    def create_image(
        self, target: MoonTarget, file_name: str, now: datetime | None = None
    ) -> bool:
        """Render ``target`` and write it as ``file_name``; False on any failure."""
        try:
            result = render_moon_chart(
                target,
                self._source,
                now=now,
                amplitude=self._amplitude,
                corrections=self._corrections,
                icon_dir=self._icon_dir,
                lang=self._lang,
            )
            path = save_chart(result.chart, self._image_dir / file_name)
        except MoonChartError as e:
            log.error(
                "No image for %s on %s (%s): %s",
                target.location,
                target.day,
                type(e).__name__,
                e,
            )
            return False
        except Exception:
            log.exception(
                "Unexpected failure for %s on %s", target.location, target.day
            )
            return False

        log.info(
            "Wrote %s (%s, %s%%)",
            path,
            result.phase.phase_name.value,
            result.phase.illumination_percent,
        )
        return True
