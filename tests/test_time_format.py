import pytest

from practice_app.core.time_format import (
    format_clock,
    format_hhmmss,
    format_human_readable,
)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "00:00"), (59, "00:59"), (61, "01:01"), (3599, "59:59"), (3600, "1:00:00"), (-5, "00:00")],
)
def test_format_clock(seconds, expected):
    assert format_clock(seconds) == expected


def test_format_hhmmss():
    assert format_hhmmss(3723) == "01:02:03"
    assert format_hhmmss(-1) == "00:00:00"


def test_format_human_readable():
    assert format_human_readable(3723) == "1h 2m 3s"
    assert format_human_readable(120) == "2m"
    assert format_human_readable(0) == "0s"
