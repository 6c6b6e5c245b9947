"""Virtual machine health checks: disk space, load and resource pressure."""

from __future__ import annotations

import math
import os
import re
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from pgflex.durations import format_duration, parse_duration, round_duration

DATA_DIRECTORY = "/data/"
PRESSURE_NAMES = ("memory", "cpu", "io")

_SUFFIXES = ("B", "KB", "MB", "GB", "TB")
_PRESSURE = re.compile(
    r"\s*some\s+avg10=(\S+)\s+avg60=(\S+)\s+avg300=(\S+)\s+total=(\S+)"
)
_LOADAVG = re.compile(r"\s*(\S+)\s+(\S+)\s+(\S+)\s+([+-]?\d+)/([+-]?\d+)\s+([+-]?\d+)")


class CheckFailed(Exception):
    """A health check ran and found the system unhealthy."""


def round_to(value: float, round_on: float, places: int) -> float:
    """Round to the given decimal places, rounding up when the fraction reaches round_on."""
    power = math.pow(10, places)
    digit = power * value
    fraction, _ = math.modf(digit)
    rounded = math.ceil(digit) if fraction >= round_on else math.floor(digit)
    return rounded / power


def _shortest(value: float) -> str:
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


def data_size(size: int) -> str:
    """Render a byte count in B, KB, MB, GB or TB with up to two decimals."""
    if size < 0:
        raise ValueError(f"size must not be negative: {size}")
    if size == 0:
        return "0 B"
    base = math.log(size) / math.log(1024)
    index = int(math.floor(base))
    if index >= len(_SUFFIXES):
        raise ValueError(f"size too large to render: {size}")
    scaled = round_to(math.pow(1024, base - math.floor(base)), 0.5, 2)
    return f"{_shortest(scaled)} {_SUFFIXES[index]}"


def pressure_to_duration(pressure: float, base: float) -> timedelta:
    """Time spent stalled within a window of `base` seconds at a pressure percentage."""
    seconds = base * (pressure / 100)
    return parse_duration(f"{seconds:f}s")


def _rounded(value: timedelta) -> str:
    return format_duration(round_duration(value, 2))


def evaluate_pressure(name: str, raw: str) -> str:
    """Judge the contents of a /proc/pressure file; raises CheckFailed above 10%."""
    match = _PRESSURE.match(raw)
    if match is None:
        raise ValueError(f"unexpected pressure data: {raw!r}")
    avg10, avg60, avg300, _total = (float(group) for group in match.groups())

    avg10_duration = pressure_to_duration(avg10, 10.0)
    avg60_duration = pressure_to_duration(avg60, 60.0)
    avg300_duration = pressure_to_duration(avg300, 300.0)

    for average, window, duration in (
        (avg10, 10, avg10_duration),
        (avg60, 60, avg60_duration),
        (avg300, 300, avg300_duration),
    ):
        if average > 10:
            raise CheckFailed(
                f"system spent {_rounded(duration)} of the last {window} seconds "
                f"waiting on {name}"
            )

    return f"system spent {_rounded(avg60_duration)} of the last 60s waiting on {name}"


def check_pressure(name: str) -> str:
    """Check the named pressure stall information of the running system."""
    raw = Path("/proc/pressure", name).read_text(encoding="utf-8")
    return evaluate_pressure(name, raw)


def evaluate_load(raw: str, cpus: int) -> str:
    """Judge the contents of /proc/loadavg against the number of CPUs."""
    match = _LOADAVG.match(raw)
    if match is None:
        raise ValueError(f"unexpected load average data: {raw!r}")
    load1, load5, load10 = (float(group) for group in match.groups()[:3])

    cpu_count = float(cpus)
    if load1 / cpu_count > 10:
        raise CheckFailed(f"1 minute load average is very high: {load1:.2f}")
    if load5 / cpu_count > 4:
        raise CheckFailed(f"5 minute load average is high: {load5:.2f}")
    if load10 / cpu_count > 2:
        raise CheckFailed(f"10 minute load average is high: {load10:.2f}")

    return f"load averages: {load10:.2f} {load5:.2f} {load1:.2f}"


def check_load() -> str:
    """Check the load averages of the running system."""
    raw = Path("/proc/loadavg").read_text(encoding="utf-8")
    return evaluate_load(raw, os.cpu_count() or 1)


def disk_usage(directory: str) -> tuple[int, int]:
    """Total and available bytes of the file system holding a directory."""
    try:
        stat = os.statvfs(directory)
    except OSError as exc:
        raise OSError(f"{directory}: {exc}") from exc
    return stat.f_blocks * stat.f_bsize, stat.f_bavail * stat.f_bsize


def check_disk(directory: str = DATA_DIRECTORY) -> str:
    """Report free space; raises CheckFailed when less than 10% is free."""
    size, available = disk_usage(directory)
    fraction = available / size
    message = f"{data_size(available)} ({fraction * 100:.1f}%) free space on {directory}"
    if fraction < 0.1:
        raise CheckFailed(message)
    return message