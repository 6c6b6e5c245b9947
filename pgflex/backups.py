"""Backup listings, restore targets and choosing a backup to restore."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import parse_qs, urlsplit

log = logging.getLogger(__name__)

_BARMAN_TIME_FORMAT = "%a %b %d %H:%M:%S %Y"
_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(Z|[+-]\d{2}:\d{2})$"
)


class BackupResolutionError(Exception):
    """No backup could be chosen for a restore."""


@dataclass
class Backup:
    """One entry of a barman backup listing."""

    id: str = ""
    name: str = ""
    status: str = ""
    start_time: str = ""
    end_time: str = ""
    begin_wal: str = ""


@dataclass
class BackupList:
    """A barman backup listing."""

    backups: list[Backup] = field(default_factory=list)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def parse_backups(data: bytes | str) -> BackupList:
    """Parse the JSON that barman prints for a backup listing."""
    document = json.loads(data)
    entries = document.get("backups_list") or []
    return BackupList(
        backups=[
            Backup(
                id=_text(entry.get("backup_id")),
                name=_text(entry.get("backup_name")),
                status=_text(entry.get("status")),
                start_time=_text(entry.get("begin_time")),
                end_time=_text(entry.get("end_time")),
                begin_wal=_text(entry.get("begin_wal")),
            )
            for entry in entries
        ]
    )


def _parse_rfc3339(value: str) -> datetime:
    match = _RFC3339.match(value)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {value}")
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    if offset == "Z":
        tz = timezone.utc
    else:
        sign = -1 if offset[0] == "-" else 1
        hours, minutes = int(offset[1:3]), int(offset[4:6])
        if hours > 23 or minutes > 59:
            raise ValueError(f"invalid time zone offset: {offset}")
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    micros = int((fraction or "0")[:6].ljust(6, "0"))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second),
        micros, tzinfo=tz,
    )


def _format_rfc3339(moment: datetime) -> str:
    offset = moment.utcoffset() or timedelta(0)
    minutes = int(offset.total_seconds()) // 60
    sign = "-" if minutes < 0 else "+"
    hours, minutes = divmod(abs(minutes), 60)
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + f"{sign}{hours:02d}:{minutes:02d}"


def format_timestamp(value: str) -> str:
    """Normalise an RFC 3339 timestamp to use a numeric offset."""
    return _format_rfc3339(_parse_rfc3339(value))


@dataclass
class RestoreTarget:
    """Recovery target parameters taken from a restore configuration URL."""

    target: str = ""
    target_name: str = ""
    target_time: str = ""
    target_timeline: str = ""
    target_action: str = "promote"
    target_inclusive: str = ""

    def select_backup(
        self, backup_list: BackupList, now: datetime | None = None
    ) -> str:
        """Choose the id of the base backup this target restores from."""
        if not backup_list.backups:
            raise BackupResolutionError("no backups found")

        if now is None:
            now = datetime.now(timezone.utc)

        if self.target:
            backup_id = resolve_backup_from_time(backup_list, now)
        elif self.target_time:
            backup_id = resolve_backup_from_time(backup_list, self.target_time)
        elif self.target_name:
            backup_id = resolve_backup_from_name(backup_list, self.target_name)
        else:
            backup_id = resolve_backup_from_time(backup_list, now)

        if not backup_id:
            raise BackupResolutionError("no backup found")
        return backup_id


def parse_restore_target(config_url: str) -> RestoreTarget:
    """Read recovery target options from the query string of a config URL."""
    try:
        query = parse_qs(urlsplit(config_url).query, keep_blank_values=True)
    except ValueError as exc:
        raise ValueError(f"invalid restore config url: {exc}") from exc

    restore = RestoreTarget(target_action="")
    for key, values in query.items():
        value = values[0]
        if key == "target":
            restore.target = value
        elif key == "targetName":
            restore.target_name = value
        elif key == "targetInclusive":
            restore.target_inclusive = value
        elif key == "targetAction":
            restore.target_action = value
        elif key == "targetTime":
            try:
                restore.target_time = format_timestamp(value)
            except ValueError as exc:
                raise ValueError(f"failed to parse target time: {exc}") from exc
        elif key == "targetTimeline":
            restore.target_timeline = value
        else:
            log.warning("unknown query parameter: %s. ignoring.", key)

    if not restore.target_action:
        restore.target_action = "promote"
    return restore


def resolve_backup_from_name(backup_list: BackupList, name: str) -> str:
    """Find a backup by its id or its name and return the id."""
    if not backup_list.backups:
        raise BackupResolutionError("no backups found")
    for backup in backup_list.backups:
        if name in (backup.id, backup.name):
            return backup.id
    raise BackupResolutionError(f"no backup found with id/name {name}")


def resolve_backup_from_time(
    backup_list: BackupList, restore_time: str | datetime
) -> str:
    """Return the id of the backup to use for recovery up to restore_time.

    Returns an empty string when no completed backup is listed.
    """
    if not backup_list.backups:
        raise BackupResolutionError("no backups found")

    if isinstance(restore_time, datetime):
        restore_at = restore_time
        if restore_at.tzinfo is None:
            restore_at = restore_at.replace(tzinfo=timezone.utc)
    else:
        try:
            restore_at = _parse_rfc3339(restore_time)
        except ValueError as exc:
            raise BackupResolutionError(f"failed to parse restore time: {exc}") from exc

    last_id = ""
    last_time: datetime | None = None

    for backup in backup_list.backups:
        if backup.status != "DONE":
            continue

        try:
            end_time = datetime.strptime(backup.end_time, _BARMAN_TIME_FORMAT)
        except ValueError as exc:
            raise BackupResolutionError(
                f"failed to parse backup end time: {exc}"
            ) from exc
        end_time = end_time.replace(tzinfo=timezone.utc)

        if not last_id or restore_at > end_time:
            last_id = backup.id
            last_time = end_time

        if last_time is not None and end_time > last_time:
            return last_id

    return last_id