"""Matplotlib raster renderer: draws the moon-times chart into an RGBA buffer.

The axes fill the whole figure and use pixel coordinates with y growing
downward, so every position below is a pixel on the 1920x1080 image. The
chart origin (``origin_x``, ``origin_y``) is minute 0 on the horizon line;
curve heights are subtracted from ``origin_y``.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path

import matplotlib.image as mpimg
import numpy as np
from matplotlib.axes import Axes
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.patches import Circle, Rectangle
from matplotlib.text import Text

from moonbuilder.i18n import t
from moonbuilder.models import (
    MINUTES_PER_DAY,
    CurveModel,
    LunarPhase,
    RenderedChart,
    RiseSetRecord,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartStyle:
    """Layout and colours, all in pixels."""

    width: int = 1920
    height: int = 1080
    dpi: int = 80  # 1920/80 and 1080/80 are exact, so the buffer size is too
    origin_x: float = 200
    origin_y: float = 500
    title_y: float = 90
    date_x: float = 1920 * 4 / 5
    date_y: float = 1080 - 20
    band_margin: float = 60
    icon_x: float = 960
    icon_y: float = 820
    icon_radius: float = 110
    phase_label_y: float = 1000
    moon_radius: float = 40
    background_color: str = "#e0e0e0"
    night_color: str = "#b4b8cc"
    day_color: str = "#f2f0dc"
    title_color: str = "#2020B0"
    label_color: str = "#2020B0"
    grid_color: str = "#A0A0A0"
    grid_width: float = 3
    path_color: str = "#666666"
    path_width: float = 4
    moon_color: str = "#666666"
    font_family: str = "DejaVu Sans"
    large_font: float = 72
    medium_font: float = 48
    small_font: float = 36


def _pt(px: float, style: ChartStyle) -> float:
    """Pixels to points (matplotlib sizes fonts and lines in points)."""
    return px * 72 / style.dpi


def center_text(ax: Axes, text: str, x: float, y: float, **kwargs) -> Text:
    """Draw ``text`` horizontally centred on ``x`` with its baseline at ``y``."""
    return ax.text(x, y, text, ha="center", va="baseline", **kwargs)


def format_time(minutes: int) -> str:
    """Minutes after midnight as a 12-hour clock string ("10:45 PM")."""
    hour, minute = divmod(int(minutes), 60)
    display_hour = hour % 12 or 12
    am_pm = "PM" if hour > 11 else "AM"
    return f"{display_hour}:{minute:02d} {am_pm}"


def load_phase_icon(icon_dir: Path | str | None, bucket: int) -> np.ndarray | None:
    """Load ``moon{bucket:02d}.png`` from ``icon_dir``; None if unavailable."""
    if icon_dir is None:
        return None
    path = Path(icon_dir) / f"moon{bucket:02d}.png"
    try:
        return mpimg.imread(path)
    except (OSError, ValueError) as e:
        log.warning("Phase icon %s unavailable, drawing a disc instead: %s", path, e)
        return None


def _line(
    ax: Axes,
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    color: str,
    width: float,
    style: ChartStyle,
) -> None:
    """Line in chart coordinates (relative to the chart origin, y down)."""
    ax.plot(
        [style.origin_x + x0, style.origin_x + x1],
        [style.origin_y + y0, style.origin_y + y1],
        color=color,
        linewidth=_pt(width, style),
        solid_capstyle="butt",
    )


def _draw_moon(
    ax: Axes,
    x: float,
    y: float,
    radius: float,
    icon: np.ndarray | None,
    style: ChartStyle,
) -> None:
    if icon is not None:
        ax.imshow(
            icon,
            extent=(x - radius, x + radius, y + radius, y - radius),
            aspect="auto",
            interpolation="antialiased",
            zorder=5,
        )
    else:
        ax.add_patch(Circle((x, y), radius, color=style.moon_color, zorder=5))


def _draw_bands(
    ax: Axes, record: RiseSetRecord, top: float, height: float, style: ChartStyle
) -> None:
    """Night / day / night shading split at sunrise and sunset."""
    if record.sunrise is None and record.sunset is None:
        return
    sunrise = record.sunrise if record.sunrise is not None else 0
    sunset = record.sunset if record.sunset is not None else MINUTES_PER_DAY
    bands = (
        (0, sunrise, style.night_color),
        (sunrise, sunset, style.day_color),
        (sunset, MINUTES_PER_DAY, style.night_color),
    )
    for start, end, color in bands:
        if end <= start:
            continue
        ax.add_patch(
            Rectangle(
                (style.origin_x + start, top),
                end - start,
                height,
                color=color,
                linewidth=0,
                zorder=0,
            )
        )


def render_chart(
    location: str,
    record: RiseSetRecord,
    phase: LunarPhase,
    curve: CurveModel,
    now_minute: int,
    *,
    style: ChartStyle = ChartStyle(),
    icon_dir: Path | str | None = None,
    lang: str = "en",
) -> RenderedChart:
    """Render the moon-times chart for one day.

    Args:
        location: Display name used in the title.
        record: The target day's record (sun shading and rise/set labels).
        phase: Lunar phase metadata for the day.
        curve: Solved visibility curve.
        now_minute: Current minute of the day for the moon marker.
        style: Layout and colours.
        icon_dir: Directory with ``moon00.png`` .. ``moon15.png``; a plain
            disc is drawn when missing.
        lang: Language code ('en' or 'ko') for chart text.

    Returns:
        RenderedChart holding the RGBA pixels.
    """
    fig = Figure(
        figsize=(style.width / style.dpi, style.height / style.dpi), dpi=style.dpi
    )
    canvas = FigureCanvasAgg(fig)
    ax = fig.add_axes((0, 0, 1, 1))
    ax.set_xlim(0, style.width)
    ax.set_ylim(style.height, 0)
    ax.set_autoscale_on(False)
    ax.axis("off")

    amplitude = max(s.amplitude for s in curve.segments)

    # Background
    ax.add_patch(
        Rectangle(
            (0, 0),
            style.width,
            style.height,
            color=style.background_color,
            zorder=-1,
        )
    )

    band_top = style.origin_y - amplitude - style.band_margin
    band_height = 2 * (amplitude + style.band_margin)
    _draw_bands(ax, record, band_top, band_height, style)

    # Title and date
    center_text(
        ax,
        t("title", lang, location=location),
        style.width / 2,
        style.title_y,
        color=style.title_color,
        fontsize=_pt(style.large_font, style),
        fontweight="bold",
        family=style.font_family,
    )
    day = record.day
    ax.text(
        style.date_x,
        style.date_y,
        f"{day:%b} {day.day}, {day.year}",
        va="baseline",
        color=style.label_color,
        fontsize=_pt(style.medium_font, style),
        family=style.font_family,
    )

    # Phase icon and label
    icon = load_phase_icon(icon_dir, phase.bucket)
    _draw_moon(ax, style.icon_x, style.icon_y, style.icon_radius, icon, style)
    center_text(
        ax,
        t(
            "phase_label",
            lang,
            phase=t(phase.phase_name.value, lang),
            illumination=phase.illumination_percent,
        ),
        style.icon_x,
        style.phase_label_y,
        color=style.label_color,
        fontsize=_pt(style.medium_font, style),
        family=style.font_family,
    )

    # Baseline, hourly ticks, taller ticks every 6 hours
    _line(ax, 0, 0, MINUTES_PER_DAY, 0, style.grid_color, style.grid_width, style)
    for hour in range(25):
        x = hour * 60
        reach = 20 if hour % 6 == 0 else 10
        _line(ax, x, -reach, x, reach, style.grid_color, style.grid_width, style)

    # Curve, one polyline per segment, sampled every minute
    for segment in curve.segments:
        lo = max(segment.start, 0)
        hi = min(segment.end, MINUTES_PER_DAY)
        if hi < lo:
            continue
        minutes = np.arange(math.ceil(lo), math.floor(hi) + 1, dtype=float)
        ax.plot(
            style.origin_x + minutes,
            style.origin_y - segment.sample(minutes),
            color=style.path_color,
            linewidth=_pt(style.path_width, style),
            zorder=3,
        )

    # Real rise/set events of this day
    for event in (record.moonrise, record.moonset):
        if event is None:
            continue
        _line(ax, event, 50, event, 100, style.label_color, 2, style)
        center_text(
            ax,
            format_time(event),
            style.origin_x + event,
            style.origin_y + 150,
            color=style.label_color,
            fontsize=_pt(style.small_font, style),
            family=style.font_family,
        )

    # Where the moon is now
    segment = curve.segment_at(now_minute)
    _draw_moon(
        ax,
        style.origin_x + now_minute,
        style.origin_y - segment.y(now_minute),
        style.moon_radius,
        icon,
        style,
    )

    canvas.draw()
    pixels = np.asarray(canvas.buffer_rgba()).copy()
    return RenderedChart(width=pixels.shape[1], height=pixels.shape[0], pixels=pixels)


def save_chart(chart: RenderedChart, output_path: Path, quality: int = 80) -> Path:
    """Encode a RenderedChart as JPEG and write it.

    Args:
        chart: Rendered chart.
        output_path: Destination file.
        quality: JPEG quality (1-95).

    Returns:
        Path to the saved file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    mpimg.imsave(
        output_path,
        chart.pixels[..., :3],
        format="jpeg",
        pil_kwargs={"quality": quality},
    )
    return output_path
