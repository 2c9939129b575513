"""CLI entry point for moon chart generation.

    uv run moonbuilder --location "Onset, MA" --lat 42.4 --lon -71.6
"""

import argparse
import logging
import re
import sys
from datetime import date, timedelta

from dotenv import load_dotenv

from moonbuilder.astronomy import IpGeolocationSource, SkyfieldSource, resolve_timezone
from moonbuilder.builder import MoonBuilder
from moonbuilder.cache import ExpiringCache
from moonbuilder.config import Settings
from moonbuilder.errors import DataUnavailable
from moonbuilder.models import MoonTarget

log = logging.getLogger("moonbuilder")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="moonbuilder", description="Render moonrise/moonset charts."
    )
    parser.add_argument("--location", required=True, help='Title, e.g. "Onset, MA"')
    parser.add_argument("--lat", type=float, required=True)
    parser.add_argument("--lon", type=float, required=True)
    parser.add_argument("--tz", default="", help="IANA timezone; looked up if omitted")
    parser.add_argument("--date", help="YYYY-MM-DD (default: today)")
    parser.add_argument("--start", help="YYYY-MM-DD, first day of a range")
    parser.add_argument("--end", help="YYYY-MM-DD, last day of a range")
    parser.add_argument(
        "--source", choices=("ipgeolocation", "skyfield"), default="ipgeolocation"
    )
    parser.add_argument("--out", default="", help="Image directory")
    parser.add_argument("--file-name", default="", help="Only for a single date")
    parser.add_argument("--lang", choices=("en", "ko"), default="en")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def _days(args: argparse.Namespace) -> list[date]:
    if args.start or args.end:
        start = date.fromisoformat(args.start or args.end)
        end = date.fromisoformat(args.end or args.start)
        return [start + timedelta(days=i) for i in range((end - start).days + 1)]
    return [date.fromisoformat(args.date) if args.date else date.today()]


def _file_name(location: str, day: date) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "", location.split(",")[0]) or "Moon"
    return f"{slug}Moon-{day.isoformat()}.jpg"


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = Settings.from_env()

    if args.source == "skyfield":
        source = SkyfieldSource(settings.ephemeris_dir)
    else:
        if not settings.api_key:
            log.error("IPGEOLOCATION_API_KEY is not set")
            return 1
        cache = ExpiringCache(settings.cache_path)
        source = IpGeolocationSource(settings.api_key, cache)

    try:
        tz_name = args.tz or resolve_timezone(args.lat, args.lon)
    except DataUnavailable as e:
        log.error("%s", e)
        return 1

    builder = MoonBuilder(
        source,
        args.out or settings.image_dir,
        amplitude=settings.amplitude,
        corrections=settings.corrections,
        icon_dir=settings.icon_dir,
        lang=args.lang,
    )

    days = _days(args)
    success = True
    for day in days:
        target = MoonTarget(
            location=args.location,
            lat=args.lat,
            lon=args.lon,
            day=day,
            timezone=tz_name,
        )
        if args.file_name and len(days) == 1:
            file_name = args.file_name
        else:
            file_name = _file_name(args.location, day)
        success = builder.create_image(target, file_name) and success

    log.info("Done: %s", "successfully" if success else "failed")
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
