from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from reprise.domain.calendar import (
    is_before_time_of_day,
    local_date,
    parse_email_time,
    same_local_date,
)
from reprise.domain.errors import InvalidEmailTimeError


@pytest.mark.parametrize(
    "value,expected",
    [("05:00", time(5, 0)), ("9:30", time(9, 30)), (" 23:59 ", time(23, 59)), ("00:00", time(0, 0))],
)
def test_parse_email_time(value, expected):
    assert parse_email_time(value) == expected


@pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "5", "05:00:00", "-1:00", ""])
def test_parse_email_time_rejects_malformed(value):
    with pytest.raises(InvalidEmailTimeError) as exc:
        parse_email_time(value)
    assert isinstance(exc.value, ValueError)


def test_time_gate():
    gate = "09:00"
    assert is_before_time_of_day(datetime(2026, 1, 1, 8, 59, tzinfo=timezone.utc), gate) is True
    assert is_before_time_of_day(datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc), gate) is False
    assert is_before_time_of_day(datetime(2026, 1, 1, 9, 0, 1, tzinfo=timezone.utc), gate) is False


@pytest.mark.parametrize("gate", [None, "", "   "])
def test_time_gate_absent_never_blocks(gate):
    assert is_before_time_of_day(datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc), gate) is False


def test_same_local_date_converts_to_local_zone():
    tokyo = ZoneInfo("Asia/Tokyo")
    now = datetime(2026, 1, 2, 8, 0, tzinfo=tokyo)
    # 22:00 UTC on Jan 1 is 07:00 on Jan 2 in Tokyo
    assert same_local_date(datetime(2026, 1, 1, 22, 0, tzinfo=timezone.utc), now) is True
    assert same_local_date(datetime(2026, 1, 1, 14, 0, tzinfo=timezone.utc), now) is False


def test_same_local_date_none():
    assert same_local_date(None, datetime.now(timezone.utc)) is False


def test_local_date_of_naive_instant():
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert local_date(datetime(2026, 1, 1, 23, 0), now) == now.date()
    assert local_date(now - timedelta(days=1), now) == (now - timedelta(days=1)).date()


@pytest.mark.parametrize("value", [1080, None, ["05:00"]])
def test_parse_email_time_rejects_non_strings(value):
    with pytest.raises(InvalidEmailTimeError):
        parse_email_time(value)


def test_time_gate_rejects_non_string_setting():
    with pytest.raises(InvalidEmailTimeError):
        is_before_time_of_day(datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc), 1080)
