"""Scheduling and retrying of full base backups."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable

from pgflex.durations import parse_duration

log = logging.getLogger(__name__)

DEFAULT_FULL_BACKUP_SCHEDULE = timedelta(hours=24)
BACKUP_RETRY_INTERVAL = timedelta(seconds=30)
DEFAULT_MAX_RETRIES = 10

_OVERDUE = timedelta(microseconds=-1)


class BackupFailedError(RuntimeError):
    """A base backup kept failing after every retry."""


def backup_frequency(settings: Any) -> timedelta:
    """Return the configured full backup frequency, or the 24h default."""
    frequency = DEFAULT_FULL_BACKUP_SCHEDULE
    configured = getattr(settings, "full_backup_frequency", "")
    if configured:
        try:
            frequency = parse_duration(configured)
        except ValueError as exc:
            log.warning("Failed to parse full backup frequency: %s", exc)
    return frequency


def calculate_next_backup_time(
    frequency: timedelta,
    last_backup_time: datetime | None,
    now: datetime | None = None,
) -> timedelta:
    """Time left until the next full backup is due.

    A negative result means a backup is due now; with no previous backup
    the result is always negative.
    """
    if last_backup_time is None:
        return _OVERDUE
    if now is None:
        now = datetime.now(last_backup_time.tzinfo)
    return last_backup_time + frequency - now


def perform_base_backup(
    run_backup: Callable[[bool], Any],
    immediate_checkpoint: bool = False,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_interval: timedelta = BACKUP_RETRY_INTERVAL,
    sleep: Callable[[float], Any] = time.sleep,
) -> None:
    """Run a backup, retrying on failure up to max_retries times."""
    retries = 0
    while True:
        try:
            run_backup(immediate_checkpoint)
            return
        except Exception as exc:
            log.warning(
                "Failed to perform full backup: %s. Retrying in %s.",
                exc,
                retry_interval,
            )
            if retries >= max_retries:
                raise BackupFailedError(
                    f"failed to perform full backup after {max_retries} retries"
                ) from exc
            retries += 1
            sleep(retry_interval.total_seconds())