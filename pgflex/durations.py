"""Duration strings in the "1h30m", "1.5s", "250ms" style."""

from __future__ import annotations

import re
from datetime import timedelta
from fractions import Fraction

_NANOS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?(ns|us|µs|μs|ms|s|m|h)")
_MAX_NANOS = 2**63 - 1


def parse_duration(text: str) -> timedelta:
    """Parse a signed sequence of number-unit pairs into a timedelta.

    Valid units are ns, us (or µs), ms, s, m and h. The bare string "0"
    is accepted. Precision below one microsecond is truncated.
    """
    original = text
    negative = False
    if text[:1] in ("+", "-") and text:
        negative = text[0] == "-"
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {original!r}")

    total = Fraction(0)
    pos = 0
    while pos < len(text):
        match = _COMPONENT.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {original!r}")
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            raise ValueError(f"invalid duration {original!r}")
        value = Fraction(int(whole or "0"))
        if fraction:
            value += Fraction(int(fraction), 10 ** len(fraction))
        total += value * _NANOS_PER_UNIT[unit]
        pos = match.end()

    nanos = int(total)
    if nanos > _MAX_NANOS:
        raise ValueError(f"invalid duration {original!r}")
    micros = nanos // 1_000
    return timedelta(microseconds=-micros if negative else micros)


def _total_micros(value: timedelta) -> int:
    return (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds


def format_duration(value: timedelta) -> str:
    """Render a timedelta in the same style that parse_duration reads."""
    micros = _total_micros(value)
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        millis, rest = divmod(micros, 1_000)
        frac = f"{rest:03d}".rstrip("0")
        return f"{sign}{millis}{'.' + frac if frac else ''}ms"

    seconds, rest = divmod(micros, 1_000_000)
    frac = f"{rest:06d}".rstrip("0")
    text = f"{seconds % 60}{'.' + frac if frac else ''}s"
    minutes = seconds // 60
    if minutes:
        hours, minutes = divmod(minutes, 60)
        text = f"{minutes}m{text}"
        if hours:
            text = f"{hours}h{text}"
    return sign + text


def round_duration(value: timedelta, digits: int) -> timedelta:
    """Round a duration to the given number of decimal places of a second.

    Halves are rounded away from zero.
    """
    if digits < 0:
        raise ValueError("digits must not be negative")
    micros = _total_micros(value)
    if digits >= 6:
        return timedelta(microseconds=micros)
    step = 10 ** (6 - digits)
    magnitude = (abs(micros) + step // 2) // step * step
    return timedelta(microseconds=-magnitude if micros < 0 else magnitude)