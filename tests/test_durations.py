from datetime import timedelta

import pytest

from pgflex.durations import format_duration, parse_duration, round_duration


def test_parse_hours_matches_timedelta():
    assert parse_duration("24h") == timedelta(hours=24)


def test_parse_zero_forms():
    assert parse_duration("0") == timedelta(0)
    assert parse_duration("0s") == timedelta(0)


def test_equivalent_spellings_agree():
    assert parse_duration("90m") == parse_duration("1h30m")
    assert parse_duration("1.5h") == parse_duration("90m")
    assert parse_duration("1000ms") == parse_duration("1s")
    assert parse_duration("1000us") == parse_duration("1ms")
    assert parse_duration("1000µs") == parse_duration("1ms")


def test_sign_handling():
    assert parse_duration("-1h") == -parse_duration("1h")
    assert parse_duration("+1h") == parse_duration("1h")


@pytest.mark.parametrize(
    "text", ["", "10seconds", "0w", "1", ".s", "1min", "-", "7d", "1mss"]
)
def test_invalid_durations(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_format_full_day():
    assert format_duration(timedelta(hours=24)) == "24h0m0s"


def test_format_zero():
    assert format_duration(timedelta(0)) == "0s"


@pytest.mark.parametrize(
    "text", ["1h30m0s", "1.5s", "100ms", "1.5ms", "250µs", "2m5s", "-1h0m0s"]
)
def test_canonical_round_trip(text):
    assert format_duration(parse_duration(text)) == text


@pytest.mark.parametrize("text", ["36h", "45m", "2.25s", "3ms", "90s"])
def test_parse_of_format_round_trip(text):
    value = parse_duration(text)
    assert parse_duration(format_duration(value)) == value


def test_round_duration_truncating_case():
    assert round_duration(parse_duration("1.23456s"), 2) == parse_duration("1.23s")


def test_round_duration_half_rounds_up():
    assert round_duration(parse_duration("1.235s"), 2) == parse_duration("1.24s")


def test_round_duration_is_idempotent():
    value = round_duration(parse_duration("7.777777s"), 3)
    assert round_duration(value, 3) == value


def test_round_duration_negative_digits_rejected():
    with pytest.raises(ValueError):
        round_duration(timedelta(seconds=1), -1)