from datetime import datetime, timezone

from app.utils.datetime_utils import camp_timezone, ensure_utc, expand_daily_windows

from conftest import at


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_naive_values_are_read_as_utc():
    assert ensure_utc(datetime(2030, 7, 2, 8, 0)) == utc(2030, 7, 2, 8, 0)
    assert ensure_utc(None) is None


def test_repeat_covers_every_camp_day():
    windows = expand_daily_windows(
        utc(2030, 7, 2, 10, 0), utc(2030, 7, 2, 11, 0), at(days=1), at(days=5), timezone.utc
    )

    assert [start.day for start, _ in windows] == [2, 3, 4, 5, 6]
    assert windows[3] == (utc(2030, 7, 5, 10, 0), utc(2030, 7, 5, 11, 0))


def test_overnight_window_rolls_to_next_day():
    windows = expand_daily_windows(
        utc(2030, 7, 2, 22, 0), utc(2030, 7, 3, 2, 0), at(days=1), at(days=2), timezone.utc
    )

    assert windows[0] == (utc(2030, 7, 2, 22, 0), utc(2030, 7, 3, 2, 0))
    assert windows[1] == (utc(2030, 7, 3, 22, 0), utc(2030, 7, 4, 2, 0))


def test_repeat_follows_camp_timezone():
    tz = camp_timezone("America/New_York")

    # 14:00Z is 10:00 local during daylight saving time
    windows = expand_daily_windows(
        utc(2030, 7, 2, 14, 0), utc(2030, 7, 2, 15, 0), at(days=1), at(days=5), tz
    )

    assert windows[0] == (utc(2030, 7, 2, 14, 0), utc(2030, 7, 2, 15, 0))
    assert len(windows) == 5


def test_unknown_timezone_falls_back_to_utc():
    assert camp_timezone("Nowhere/Special") is timezone.utc
