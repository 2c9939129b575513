"""Astronomy data layer: sun/moon rise and set records for a location and day.

Two sources implement the same ``AstronomyDataSource`` protocol:
``IpGeolocationSource`` (REST API with a midnight-expiring cache) and
``SkyfieldSource`` (offline, computed from a JPL ephemeris).
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx
from pytz import timezone as pytz_timezone
from skyfield import almanac
from skyfield.api import Loader, wgs84
from timezonefinder import TimezoneFinder

from moonbuilder.cache import ExpiringCache, midnight_expiry_ms
from moonbuilder.errors import DataUnavailable
from moonbuilder.models import RiseSetRecord

log = logging.getLogger(__name__)

NO_EVENT = "-:-"  # API value for "no such event on this day"
API_URL = "https://api.ipgeolocation.io/astronomy"

_tf = TimezoneFinder()


@runtime_checkable
class AstronomyDataSource(Protocol):
    def get(self, lat: float, lon: float, day: date, tz_name: str) -> RiseSetRecord:
        """Return the record for ``day``; raise DataUnavailable on failure."""
        ...


def parse_minutes(value: str | None) -> int | None:
    """Convert "HH:MM" to minutes after midnight (0..1439).

    The "-:-" sentinel and None mean the event does not happen that day. Any
    other string that is not a valid 24-hour time is logged and also treated
    as absent; this function never raises.
    """
    if value is None or value == NO_EVENT:
        return None

    parts = str(value).split(":")
    if len(parts) < 2:
        log.warning("Malformed time %r: expected HH:MM", value)
        return None
    fields = parts[:2]
    if not all(f.isascii() and f.isdigit() for f in fields):
        log.warning("Malformed time %r: non-numeric field", value)
        return None
    hour, minute = (int(f) for f in fields)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        log.warning("Malformed time %r: out of range", value)
        return None
    return hour * 60 + minute


def record_from_payload(payload: dict[str, Any], day: date) -> RiseSetRecord:
    """Build a RiseSetRecord from an ipgeolocation astronomy response."""
    return RiseSetRecord(
        day=day,
        sunrise=parse_minutes(payload.get("sunrise")),
        sunset=parse_minutes(payload.get("sunset")),
        moonrise=parse_minutes(payload.get("moonrise")),
        moonset=parse_minutes(payload.get("moonset")),
    )


def resolve_timezone(lat: float, lon: float) -> str:
    """IANA timezone name at a coordinate.

    Raises:
        DataUnavailable: When the coordinate has no timezone (open ocean).
    """
    tz_str = _tf.timezone_at(lat=lat, lng=lon)
    if tz_str is None:
        raise DataUnavailable(f"Timezone not found: lat={lat}, lon={lon}")
    return tz_str


class IpGeolocationSource:
    """Rise/set records from api.ipgeolocation.io, cached until local midnight.

    Args:
        api_key: ipgeolocation.io API key.
        cache: Shared cache; keyed by latitude, longitude, and date.
        client: Optional httpx client (tests inject a MockTransport here).
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        cache: ExpiringCache,
        client: httpx.Client | None = None,
        timeout: float = 20.0,
    ):
        self._api_key = api_key
        self._cache = cache
        self._client = client
        self._timeout = timeout

    @staticmethod
    def cache_key(lat: float, lon: float, day: date) -> str:
        return f"lat:{lat}-lon:{lon}-date:{day.isoformat()}"

    def _fetch(self, lat: float, lon: float, day: date) -> dict[str, Any]:
        params = {
            "apiKey": self._api_key,
            "lat": lat,
            "long": lon,
            "date": day.isoformat(),
        }
        # The key is a query parameter, so only the bare URL is logged.
        log.debug("GET %s lat=%s lon=%s date=%s", API_URL, lat, lon, day)
        if self._client is not None:
            resp = self._client.get(API_URL, params=params, timeout=self._timeout)
        else:
            resp = httpx.get(API_URL, params=params, timeout=self._timeout)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise DataUnavailable(f"Unexpected astronomy payload for {day}: {data!r}")
        return data

    def get(self, lat: float, lon: float, day: date, tz_name: str) -> RiseSetRecord:
        key = self.cache_key(lat, lon, day)
        payload = self._cache.get(key)
        if payload is None:
            try:
                payload = self._fetch(lat, lon, day)
            except (httpx.HTTPError, ValueError) as e:
                raise DataUnavailable(f"No astronomy data for {day}: {e}") from e
            try:
                self._cache.set(key, payload, midnight_expiry_ms(tz_name))
            except OSError as e:
                log.warning("Could not cache %s: %s", key, e)
        else:
            log.debug("Cache hit: %s", key)
        return record_from_payload(payload, day)


class SkyfieldSource:
    """Rise/set records computed locally with skyfield's almanac search.

    Args:
        ephemeris_dir: Directory holding (or receiving) the ephemeris file.
        ephemeris: Ephemeris file name.
    """

    def __init__(self, ephemeris_dir: Path | str, ephemeris: str = "de421.bsp"):
        self._loader = Loader(str(ephemeris_dir))
        self._eph = self._loader(ephemeris)
        self._ts = self._loader.timescale()

    def _first_event(self, finder, observer, body, t0, t1, tz) -> int | None:
        times, found = finder(observer, body, t0, t1)
        for local_dt, ok in zip(times.astimezone(tz), found):
            if ok:
                return local_dt.hour * 60 + local_dt.minute
        return None

    def get(self, lat: float, lon: float, day: date, tz_name: str) -> RiseSetRecord:
        tz = pytz_timezone(tz_name)
        midnight = datetime.min.time()
        t0 = self._ts.from_datetime(tz.localize(datetime.combine(day, midnight)))
        t1 = self._ts.from_datetime(
            tz.localize(datetime.combine(day + timedelta(days=1), midnight))
        )

        observer = self._eph["earth"] + wgs84.latlon(
            latitude_degrees=lat, longitude_degrees=lon
        )
        searches = {
            "sunrise": (almanac.find_risings, self._eph["sun"]),
            "sunset": (almanac.find_settings, self._eph["sun"]),
            "moonrise": (almanac.find_risings, self._eph["moon"]),
            "moonset": (almanac.find_settings, self._eph["moon"]),
        }
        try:
            events = {
                name: self._first_event(finder, observer, body, t0, t1, tz)
                for name, (finder, body) in searches.items()
            }
        except ValueError as e:
            raise DataUnavailable(f"Skyfield search failed for {day}: {e}") from e
        return RiseSetRecord(day=day, **events)
