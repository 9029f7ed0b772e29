from datetime import datetime, timedelta, timezone
from app.utils.timestamps import to_instant


def test_naive_datetime_is_treated_as_utc():
    assert to_instant(datetime(2026, 5, 1, 10, 0)) == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_aware_datetime_is_converted_to_utc():
    colombo = timezone(timedelta(hours=5, minutes=30))
    value = to_instant(datetime(2026, 5, 1, 15, 30, tzinfo=colombo))
    assert value == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert value.tzinfo == timezone.utc


def test_iso_strings():
    assert to_instant("2026-05-01T10:00:00Z") == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert to_instant("2026-05-01T10:00:00.000+00:00") == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_epoch_seconds_and_millis():
    expected = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert to_instant(int(expected.timestamp())) == expected
    assert to_instant(int(expected.timestamp() * 1000)) == expected


def test_serialized_timestamp_map():
    expected = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert to_instant({"seconds": int(expected.timestamp()), "nanoseconds": 0}) == expected
    assert to_instant({"_seconds": int(expected.timestamp()), "_nanoseconds": 0}) == expected


def test_unusable_values():
    assert to_instant(None) is None
    assert to_instant("") is None
    assert to_instant("yesterday") is None
    assert to_instant(True) is None
    assert to_instant(["2026"]) is None
