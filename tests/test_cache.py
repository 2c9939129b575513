import json
import logging
from datetime import datetime

import pytz

from moonbuilder.cache import ExpiringCache, midnight_expiry_ms

_FAR_FUTURE = 4_102_444_800_000  # 2100-01-01


def _ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def test_midnight_expiry_is_last_millisecond_of_local_day():
    tz = pytz.timezone("America/New_York")
    now = tz.localize(datetime(2024, 7, 4, 15, 30))
    expected = _ms(pytz.utc.localize(datetime(2024, 7, 5, 4, 0))) - 1
    assert midnight_expiry_ms("America/New_York", now) == expected


def test_midnight_expiry_on_spring_forward_day():
    tz = pytz.timezone("America/New_York")
    now = tz.localize(datetime(2024, 3, 10, 12, 0))
    # The next midnight is already in daylight time (UTC-4).
    expected = _ms(pytz.utc.localize(datetime(2024, 3, 11, 4, 0))) - 1
    assert midnight_expiry_ms("America/New_York", now) == expected


def test_midnight_expiry_uses_target_zone_not_caller_zone():
    # 02:00 UTC on Jan 2 is still Jan 1 in New York.
    now = pytz.utc.localize(datetime(2024, 1, 2, 2, 0))
    expected = _ms(pytz.utc.localize(datetime(2024, 1, 2, 5, 0))) - 1
    assert midnight_expiry_ms("America/New_York", now) == expected


def test_set_then_get(tmp_path):
    cache = ExpiringCache(tmp_path / "cache.json")
    cache.set("k", {"moonrise": "10:22"}, expires_ms=2_000)
    assert cache.get("k", now_ms=1_000) == {"moonrise": "10:22"}
    assert cache.get("missing", now_ms=1_000) is None


def test_expired_entry_is_dropped(tmp_path):
    path = tmp_path / "cache.json"
    cache = ExpiringCache(path)
    cache.set("k", "v", expires_ms=2_000)

    assert cache.get("k", now_ms=2_000) is None
    assert "k" not in json.loads(path.read_text())
    assert cache.get("k", now_ms=1_000) is None


def test_entries_survive_a_new_instance(tmp_path):
    path = tmp_path / "nested" / "cache.json"
    ExpiringCache(path).set("k", [1, 2, 3], expires_ms=_FAR_FUTURE)

    reopened = ExpiringCache(path)
    assert reopened.get("k") == [1, 2, 3]
    assert not path.with_suffix(".json.tmp").exists()


def test_corrupt_file_starts_empty(tmp_path, caplog):
    path = tmp_path / "cache.json"
    path.write_text("{not json")

    with caplog.at_level(logging.WARNING, logger="moonbuilder.cache"):
        cache = ExpiringCache(path)

    assert cache.get("k", now_ms=0) is None
    assert "unreadable" in caplog.text
    cache.set("k", "v", expires_ms=10)
    assert json.loads(path.read_text()) == {"k": {"value": "v", "expires": 10}}


def test_unexpected_layout_starts_empty(tmp_path, caplog):
    path = tmp_path / "cache.json"
    path.write_text("[1, 2]")

    with caplog.at_level(logging.WARNING, logger="moonbuilder.cache"):
        cache = ExpiringCache(path)

    assert cache.get("k", now_ms=0) is None
    assert "unexpected layout" in caplog.text


def test_stale_entries_are_dropped_on_open_and_on_set(tmp_path):
    path = tmp_path / "cache.json"
    stale = {f"day-{i}": {"value": i, "expires": 1_000 + i} for i in range(100)}
    stale["fresh"] = {"value": "keep", "expires": _FAR_FUTURE}
    path.write_text(json.dumps(stale))

    cache = ExpiringCache(path)
    cache.set("another", "v", expires_ms=_FAR_FUTURE)

    assert sorted(json.loads(path.read_text())) == ["another", "fresh"]
    assert cache.get("fresh") == "keep"


def test_set_drops_entries_that_expired_since_open(tmp_path):
    path = tmp_path / "cache.json"
    cache = ExpiringCache(path)
    cache.set("old", 1, expires_ms=2_000, now_ms=1_000)
    cache.set("new", 2, expires_ms=9_000, now_ms=5_000)

    assert list(json.loads(path.read_text())) == ["new"]


def test_failed_eviction_write_still_returns_none(tmp_path, monkeypatch, caplog):
    cache = ExpiringCache(tmp_path / "cache.json")
    cache.set("k", "v", expires_ms=2_000, now_ms=1_000)

    def refuse(*args, **kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr("moonbuilder.cache.os.replace", refuse)
    with caplog.at_level(logging.WARNING, logger="moonbuilder.cache"):
        assert cache.get("k", now_ms=3_000) is None
    assert "read-only" in caplog.text
