"""Administrative SQL helpers for users, databases, settings and slots."""

from __future__ import annotations

import re
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Iterable

_INTEGER = re.compile(r"[+-]?\d+")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class NoRowsError(LookupError):
    """A query that must return a row returned none."""


class SettingsValidationError(ValueError):
    """Requested Postgres settings cannot be applied."""


@dataclass
class Credential:
    """A user name and password pair."""

    username: str
    password: str


@dataclass
class ReplicationSlot:
    """A row of pg_replication_slots, with the repmgr member id it belongs to."""

    name: str = ""
    active: bool = False
    wal_status: str = ""
    retained_wal_in_bytes: int = 0
    member_id: int = 0


@dataclass
class UserInfo:
    """A database user and the databases it may connect to."""

    username: str = ""
    superuser: bool = False
    databases: list[str] = field(default_factory=list)


@dataclass
class DbInfo:
    """A database and the users allowed to connect to it."""

    name: str = ""
    users: list[str] = field(default_factory=list)


def _optional(**extra: Any) -> Any:
    return field(default=None, metadata={"omitempty": True, **extra})


@dataclass
class PGSetting:
    """A row of pg_settings."""

    name: str = field(default="", metadata={"omitempty": True})
    setting: str = field(default="", metadata={"omitempty": True})
    vartype: str | None = _optional()
    min_val: str | None = _optional()
    max_val: str | None = _optional()
    enumvals: list[str] | None = _optional()
    context: str | None = _optional()
    unit: str | None = _optional()
    short_desc: str | None = _optional()
    pending_change: str | None = _optional()
    pending_restart: bool | None = _optional()


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _execute(conn: Any, sql: str) -> None:
    with closing(conn.cursor()) as cursor:
        cursor.execute(sql)


def _query_row(conn: Any, sql: str) -> tuple:
    with closing(conn.cursor()) as cursor:
        cursor.execute(sql)
        row = cursor.fetchone()
    if row is None:
        raise NoRowsError("no rows in result set")
    return tuple(row)


def _query(conn: Any, sql: str) -> list[tuple]:
    with closing(conn.cursor()) as cursor:
        cursor.execute(sql)
        return [tuple(row) for row in cursor.fetchall()]


def grant_access(conn: Any, username: str) -> None:
    """Grant read and write access on all data to a user."""
    _execute(conn, f"GRANT pg_read_all_data, pg_write_all_data TO {_quote(username)}")


def grant_superuser(conn: Any, username: str) -> None:
    """Make a user a superuser."""
    _execute(conn, f"ALTER USER {username} WITH SUPERUSER;")


def create_user(conn: Any, username: str, password: str) -> None:
    """Create a login user with the given password."""
    _execute(conn, f"CREATE USER {username} WITH LOGIN PASSWORD '{password}'")


def manage_default_users(conn: Any, credentials: Iterable[Credential]) -> None:
    """Create missing users as superusers and reset passwords of existing ones."""
    try:
        existing = {user.username for user in list_users(conn)}
    except Exception as exc:
        raise RuntimeError(f"failed to list existing users: {exc}") from exc

    for cred in credentials:
        if cred.username in existing:
            try:
                change_password(conn, cred.username, cred.password)
            except Exception as exc:
                raise RuntimeError(
                    f"failed to update credentials for user {cred.username}: {exc}"
                ) from exc
            continue
        try:
            create_user(conn, cred.username, cred.password)
        except Exception as exc:
            raise RuntimeError(
                f"failed to create require user {cred.username}: {exc}"
            ) from exc
        try:
            grant_superuser(conn, cred.username)
        except Exception as exc:
            raise RuntimeError(
                "failed to grant superuser privileges to user "
                f"{cred.username}: {exc}"
            ) from exc


def change_password(conn: Any, username: str, password: str) -> None:
    """Set a new login password for a user."""
    _execute(conn, f"ALTER USER {username} WITH LOGIN PASSWORD '{password}';")


def create_database_with_owner(conn: Any, name: str, owner: str) -> None:
    """Create a database owned by the given role unless it already exists."""
    if find_database(conn, name) is not None:
        return
    _execute(conn, f"CREATE DATABASE {name} OWNER {owner};")


def create_database(conn: Any, name: str) -> None:
    """Create a database unless it already exists."""
    if find_database(conn, name) is not None:
        return
    _execute(conn, f"CREATE DATABASE {name};")


def grant_create_on_public(conn: Any) -> None:
    """Allow every user to create objects in the public schema."""
    _execute(conn, "GRANT CREATE on SCHEMA PUBLIC to PUBLIC;")


def delete_database(conn: Any, name: str) -> None:
    """Drop a database."""
    _execute(conn, f"DROP DATABASE {name};")


_SLOT_COLUMNS = (
    "SELECT slot_name, active, wal_status, "
    "pg_wal_lsn_diff(pg_current_wal_lsn(), restart_lsn) AS retained_wal "
    "FROM pg_replication_slots"
)


def _slot_from_row(row: tuple) -> ReplicationSlot:
    name, active, wal_status, retained = row
    return ReplicationSlot(
        name=name,
        active=bool(active),
        wal_status=wal_status,
        retained_wal_in_bytes=int(retained),
    )


def get_replication_slot(conn: Any, slot_name: str) -> ReplicationSlot:
    """Fetch one replication slot by name; raises NoRowsError if absent."""
    row = _query_row(conn, f"{_SLOT_COLUMNS} where slot_name = '{slot_name}';")
    return _slot_from_row(row)


def list_replication_slots(conn: Any) -> list[ReplicationSlot]:
    """List the repmgr-managed replication slots with their member ids."""
    slots = []
    for row in _query(conn, f"{_SLOT_COLUMNS};"):
        slot = _slot_from_row(row)
        parts = slot.name.split("_")
        if parts[0] != "repmgr":
            continue
        if len(parts) < 3 or not _INTEGER.fullmatch(parts[2]):
            raise ValueError(f"invalid replication slot name: {slot.name}")
        member_id = int(parts[2])
        if not _INT32_MIN <= member_id <= _INT32_MAX:
            raise ValueError(f"member id out of range: {parts[2]}")
        slot.member_id = member_id
        slots.append(slot)
    return slots


def drop_replication_slot(conn: Any, name: str) -> None:
    """Drop a replication slot."""
    _execute(conn, f"SELECT pg_drop_replication_slot('{name}');")


def enable_extension(conn: Any, extension: str) -> None:
    """Create an extension if it is not already installed."""
    _execute(conn, f"CREATE EXTENSION IF NOT EXISTS {extension};")


def list_databases(conn: Any) -> list[DbInfo]:
    """List non-template databases with the users allowed to connect."""
    sql = """
        SELECT d.datname,
               (SELECT array_agg(u.usename::text order by u.usename)
                  from pg_user u
                  where has_database_privilege(u.usename, d.datname, 'CONNECT')) as allowed_users
        from pg_database d where d.datistemplate = false
        order by d.datname;
    """
    return [DbInfo(name=name, users=list(users or [])) for name, users in _query(conn, sql)]


def find_database(conn: Any, name: str) -> DbInfo | None:
    """Return the named database, or None if there is none."""
    return next((db for db in list_databases(conn) if db.name == name), None)


def list_users(conn: Any) -> list[UserInfo]:
    """List users, whether they are superusers, and their databases."""
    sql = """
        select u.usename,
               usesuper as superuser,
               (select array_agg(d.datname::text order by d.datname)
                  from pg_database d
                  WHERE datistemplate = false
                  AND has_database_privilege(u.usename, d.datname, 'CONNECT')
               ) as allowed_databases
        from pg_user u
        join pg_authid a on u.usesysid = a.oid
        order by u.usename
    """
    return [
        UserInfo(username=name, superuser=bool(superuser), databases=list(dbs or []))
        for name, superuser, dbs in _query(conn, sql)
    ]


def find_user(conn: Any, username: str) -> UserInfo | None:
    """Return the named user, or None if there is none."""
    return next((u for u in list_users(conn) if u.username == username), None)


def drop_role(conn: Any, username: str) -> None:
    """Drop a role."""
    _execute(conn, f"DROP ROLE {username}")


def reassign_ownership(conn: Any, user: str, target_user: str) -> None:
    """Hand every object owned by one role to another."""
    _execute(conn, f"REASSIGN OWNED BY {user} TO {target_user};")


def drop_owned(conn: Any, user: str) -> None:
    """Drop every object still owned by a role."""
    _execute(conn, f"DROP OWNED BY {user};")


def set_configuration_setting(conn: Any, key: str, value: Any) -> None:
    """Set a run-time parameter for the current session."""
    text = str(value).lower() if isinstance(value, bool) else str(value)
    _execute(conn, f"SET {key} to {text}")


def reload_postgres_config(conn: Any) -> None:
    """Ask the server to reload its configuration files."""
    _execute(conn, "SELECT pg_reload_conf()")


def setting_exists(conn: Any, setting: str) -> bool:
    """Whether pg_settings knows the named setting."""
    row = _query_row(
        conn, f"SELECT EXISTS(SELECT 1 FROM pg_settings WHERE name='{setting}')"
    )
    return bool(row[0])


def extension_available(conn: Any, extension: str) -> bool:
    """Whether the named extension is available for installation."""
    row = _query_row(
        conn,
        f"SELECT EXISTS(SELECT 1 FROM pg_available_extensions WHERE name='{extension}')",
    )
    return bool(row[0])


def setting_requires_restart(conn: Any, setting: str) -> bool:
    """Whether a changed setting waits on a server restart."""
    row = _query_row(
        conn, f"SELECT pending_restart FROM pg_settings WHERE name='{setting}'"
    )
    return bool(row[0])


def get_setting(conn: Any, setting: str) -> PGSetting:
    """Fetch the details of one setting; raises NoRowsError if unknown."""
    row = _query_row(
        conn,
        "SELECT name, setting, vartype, min_val, max_val, enumvals, context, unit, "
        f"short_desc, pending_restart FROM pg_settings WHERE name='{setting}'",
    )
    (name, value, vartype, min_val, max_val, enumvals, context, unit, desc,
     pending_restart) = row
    return PGSetting(
        name=name,
        setting=value,
        vartype=vartype,
        min_val=min_val,
        max_val=max_val,
        enumvals=None if enumvals is None else list(enumvals),
        context=context,
        unit=unit,
        short_desc=desc,
        pending_restart=pending_restart,
    )


def validate_pg_settings(conn: Any, requested: dict[str, Any]) -> None:
    """Raise SettingsValidationError if any requested setting cannot be applied."""
    for key, value in requested.items():
        try:
            exists = setting_exists(conn, key)
        except Exception as exc:
            raise SettingsValidationError(f"failed to verify setting: {exc}") from exc
        if not exists:
            raise SettingsValidationError(f"setting {key} is not a valid config option")

        if key == "shared_preload_libraries":
            for extension in str(value).strip("'").split(","):
                try:
                    available = extension_available(conn, extension)
                except Exception as exc:
                    raise SettingsValidationError(
                        f"failed to verify pg extension {extension}: {exc}"
                    ) from exc
                if not available:
                    raise SettingsValidationError(
                        f"extension {extension} has not been installed within this image"
                    )

        if key == "max_replication_slots":
            text = str(value)
            if not _INTEGER.fullmatch(text):
                raise SettingsValidationError(
                    f"failed to parse max_replication_slots: {text!r}"
                )
            maximum = int(text)
            try:
                slots = list_replication_slots(conn)
            except Exception as exc:
                raise SettingsValidationError(
                    f"failed to verify replication slots: {exc}"
                ) from exc
            if len(slots) > maximum:
                raise SettingsValidationError(
                    "max_replication_slots must be greater than or equal to the "
                    f"number of active replication slots ({len(slots)})"
                )