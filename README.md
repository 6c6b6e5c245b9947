# pgflex

Helpers for running a replicated PostgreSQL cluster whose backups are taken
with Barman. It has no dependencies outside the standard library.

## Modules

- `pgflex.durations`: `parse_duration` reads strings such as `24h`, `1h30m`,
  `1.5s` or `500ms` (units `ns`, `us`/`µs`, `ms`, `s`, `m`, `h`) into a
  `timedelta`; `format_duration` writes one back in that style;
  `round_duration` rounds to a number of decimal places of a second.
- `pgflex.barman_config`: `BarmanConfig` keeps Barman settings in a
  directory (`barman.internal.conf` with the defaults, `barman.user.conf` with
  user overrides). The defaults are `archive_timeout = 60s`,
  `recovery_window = 7d`, `full_backup_frequency = 24h` and
  `minimum_redundancy = 3`. `BarmanConfig.validate` raises
  `ConfigValidationError` for unknown keys or unacceptable values;
  `parse_settings` returns a `BarmanSettings`. The helpers
  `convert_to_postgres_units` (`"60m"` → `"60min"`) and
  `convert_recovery_window_duration` (`"7d"` → `"7 DAYS"`) are public too.
- `pgflex.backups`: `parse_backups` reads the JSON backup listing Barman
  prints (the `backups_list` key) into a `BackupList` of `Backup` entries;
  `parse_restore_target` reads recovery options (`target`, `targetName`,
  `targetTime`, `targetTimeline`, `targetAction`, `targetInclusive`) from the
  query string of a configuration URL into a `RestoreTarget`, whose
  `select_backup` picks the backup to restore. `resolve_backup_from_name`
  matches an ID or a name; `resolve_backup_from_time` picks a completed
  backup for a point in time. Both raise `BackupResolutionError` when there
  is nothing to choose. `format_timestamp` normalises an RFC 3339 timestamp
  to a numeric offset (`Z` → `+00:00`).
- `pgflex.schedule`: `backup_frequency` takes the configured full backup
  frequency (24 hours by default); `calculate_next_backup_time` says how long
  until the next full backup, negative when one is due;
  `perform_base_backup` runs a backup callable and retries it, raising
  `BackupFailedError` when the retries run out.
- `pgflex.admin`: SQL for users, databases, replication slots and server
  settings (`create_user`, `list_databases`, `list_replication_slots`,
  `get_setting`, `validate_pg_settings` and others). Each function takes any
  DB-API style connection that offers `cursor()`. Queries that must return a
  row raise `NoRowsError`; `validate_pg_settings` raises
  `SettingsValidationError`.
- `pgflex.response`: `Response` with `to_dict()` for JSON bodies,
  `status_for_error` mapping an error to an HTTP status (404 for
  `NoRowsError`, 409 or 400 for some SQLSTATE codes, 500 otherwise) and
  `error_body`.
- `pgflex.vmchecks`: disk, load and pressure checks that read `/proc` and
  `statvfs`; they raise `CheckFailed` when the system is unhealthy.
  `evaluate_load` and `evaluate_pressure` judge raw file contents directly.
- `pgflex.barman_check`: `check_barman_connection` runs `barman check pg`
  and `parse_barman_check` turns its output into `CheckResult` entries.
- `pgflex.roles`: `role_label` and `api_role_label` turn a repmgr role
  (`primary`, `standby`, `witness`) into the label reported to callers.
- `pgflex.failover`: `quorum_met` and the failover validation command.

## Installation

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Examples

Validate a settings change:

```python
from pgflex.barman_config import BarmanConfig, ConfigValidationError

config = BarmanConfig("/tmp/barman/")
try:
    config.validate({"recovery_window": "0w"})
except ConfigValidationError as exc:
    print(exc)
```

Work out when the next full backup is due:

```python
from datetime import datetime, timedelta, timezone
from pgflex.schedule import calculate_next_backup_time

now = datetime.now(timezone.utc)
due_in = calculate_next_backup_time(timedelta(hours=24), now - timedelta(hours=1), now)
```

Pick a base backup to restore:

```python
from pgflex.backups import parse_backups, resolve_backup_from_name

backups = parse_backups(raw_json)
backup_id = resolve_backup_from_name(backups, "test-backup-1")
```

## Failover validation

Before promoting a standby, check that it can see a quorum of the
registered nodes:

```
pgflex-failover-validation --visible-nodes 2 --total-nodes 3
```

The command exits with status 0 when a quorum is met. Otherwise it prints
the node counts and exits with status 1.

## What it does not do

The package has no HTTP admin server, no background monitor, and no
command for listing, creating or restoring backups. It does not open
database connections and ships no PostgreSQL driver: pass in a connection
from a driver of your choice. Settings are not synchronised with a shared
key-value store; `BarmanConfig` reads and writes only its local files.