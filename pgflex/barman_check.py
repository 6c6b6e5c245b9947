"""Health checks derived from the output of `barman check pg`."""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass

_LINE = re.compile(r"\s*(.*?):(.*)$")


@dataclass
class CheckResult:
    """The outcome of one named check."""

    name: str
    message: str
    passed: bool


def parse_barman_check(output: str) -> list[CheckResult]:
    """Turn each "name: status" line of barman's output into a check result."""
    results = []
    for line in output.split("\n"):
        match = _LINE.search(line)
        if match is None:
            continue
        name, message = match.groups()
        if message == "":
            continue
        results.append(CheckResult(name, message, "FAILED" not in message))
    return results


def check_barman_connection() -> list[CheckResult]:
    """Run `barman check pg` and report its individual checks."""
    try:
        completed = subprocess.run(
            ["barman", "check", "pg"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except OSError:
        completed = None

    if completed is None or completed.returncode != 0:
        return [CheckResult("connection", "failed running `barman check pg`", False)]

    output = completed.stdout
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return parse_barman_check(output)