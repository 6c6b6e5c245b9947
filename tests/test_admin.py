import pytest

from pgflex.admin import (
    Credential,
    NoRowsError,
    SettingsValidationError,
    change_password,
    create_database,
    create_database_with_owner,
    create_user,
    drop_replication_slot,
    find_database,
    find_user,
    get_replication_slot,
    get_setting,
    grant_access,
    grant_create_on_public,
    list_replication_slots,
    manage_default_users,
    reload_postgres_config,
    set_configuration_setting,
    setting_requires_restart,
    validate_pg_settings,
)


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rows = []

    def execute(self, sql):
        self.conn.statements.append(sql)
        self.rows = self.conn.results.pop(0) if self.conn.results else []

    def fetchone(self):
        return self.rows[0] if self.rows else None

    def fetchall(self):
        return list(self.rows)

    def close(self):
        self.conn.closed_cursors += 1


class FakeConnection:
    def __init__(self, *results):
        self.results = list(results)
        self.statements = []
        self.closed_cursors = 0

    def cursor(self):
        return FakeCursor(self)


def test_grant_access_quotes_username():
    conn = FakeConnection()
    grant_access(conn, "alice")
    assert conn.statements == ['GRANT pg_read_all_data, pg_write_all_data TO "alice"']
    assert conn.closed_cursors == 1


def test_create_user_and_change_password():
    password = "password"
    conn = FakeConnection()
    create_user(conn, "alice", password)
    change_password(conn, "alice", password)
    assert conn.statements[0] == "CREATE USER alice WITH LOGIN PASSWORD 'password'"
    assert conn.statements[1] == "ALTER USER alice WITH LOGIN PASSWORD 'password';"


def test_fixed_statements():
    conn = FakeConnection()
    grant_create_on_public(conn)
    reload_postgres_config(conn)
    assert conn.statements == [
        "GRANT CREATE on SCHEMA PUBLIC to PUBLIC;",
        "SELECT pg_reload_conf()",
    ]


def test_create_database_skips_existing():
    conn = FakeConnection([("app", ["postgres"])])
    create_database(conn, "app")
    assert len(conn.statements) == 1
    assert not any(s.startswith("CREATE DATABASE") for s in conn.statements)


def test_create_database_when_missing():
    conn = FakeConnection([("other", None)])
    create_database(conn, "app")
    assert conn.statements[-1] == "CREATE DATABASE app;"


def test_create_database_with_owner():
    conn = FakeConnection([])
    create_database_with_owner(conn, "app", "alice")
    assert conn.statements[-1] == "CREATE DATABASE app OWNER alice;"


def test_find_database_returns_match_or_none():
    rows = [("app", ["alice", "postgres"]), ("postgres", None)]
    found = find_database(FakeConnection(list(rows)), "app")
    assert found.name == "app"
    assert found.users == ["alice", "postgres"]
    assert find_database(FakeConnection(list(rows)), "missing") is None


def test_find_user():
    rows = [("alice", False, ["app"]), ("postgres", True, None)]
    user = find_user(FakeConnection(list(rows)), "postgres")
    assert user.superuser is True
    assert user.databases == []
    assert find_user(FakeConnection(list(rows)), "bob") is None


def test_list_replication_slots_filters_and_parses_ids():
    conn = FakeConnection(
        [
            ("repmgr_slot_3", True, "reserved", 0),
            ("custom_slot", False, "reserved", 10),
            ("repmgr_slot_7", False, "extended", 2048),
        ]
    )
    slots = list_replication_slots(conn)
    assert [s.member_id for s in slots] == [3, 7]
    assert slots[1].retained_wal_in_bytes == 2048
    assert slots[1].active is False


def test_list_replication_slots_rejects_bad_id():
    conn = FakeConnection([("repmgr_slot_abc", True, "reserved", 0)])
    with pytest.raises(ValueError):
        list_replication_slots(conn)


def test_get_replication_slot_missing_raises():
    conn = FakeConnection([])
    with pytest.raises(NoRowsError):
        get_replication_slot(conn, "repmgr_slot_1")


def test_get_replication_slot_found():
    conn = FakeConnection([("repmgr_slot_1", True, "reserved", 0)])
    slot = get_replication_slot(conn, "repmgr_slot_1")
    assert slot.name == "repmgr_slot_1"
    assert slot.active is True
    assert "slot_name = 'repmgr_slot_1'" in conn.statements[0]


def test_drop_replication_slot():
    conn = FakeConnection()
    drop_replication_slot(conn, "repmgr_slot_2")
    assert conn.statements == ["SELECT pg_drop_replication_slot('repmgr_slot_2');"]


def test_manage_default_users():
    password = "password"
    conn = FakeConnection([("flypgadmin", True, None)])
    manage_default_users(
        conn,
        [Credential("flypgadmin", password), Credential("repmgr", password)],
    )
    assert conn.statements[1] == (
        "ALTER USER flypgadmin WITH LOGIN PASSWORD 'password';"
    )
    assert conn.statements[2] == "CREATE USER repmgr WITH LOGIN PASSWORD 'password'"
    assert conn.statements[3] == "ALTER USER repmgr WITH SUPERUSER;"


def test_set_configuration_setting_bool_is_lowercase():
    conn = FakeConnection()
    set_configuration_setting(conn, "default_transaction_read_only", True)
    assert conn.statements == ["SET default_transaction_read_only to true"]


def test_setting_requires_restart():
    assert setting_requires_restart(FakeConnection([(True,)]), "shared_buffers") is True
    assert setting_requires_restart(FakeConnection([(False,)]), "work_mem") is False


def test_get_setting_maps_columns():
    conn = FakeConnection(
        [("work_mem", "4096", "integer", "64", "2147483647", None, "user", "kB",
          "desc", False)]
    )
    setting = get_setting(conn, "work_mem")
    assert setting.name == "work_mem"
    assert setting.vartype == "integer"
    assert setting.unit == "kB"
    assert setting.enumvals is None
    assert setting.pending_restart is False


def test_validate_unknown_setting():
    with pytest.raises(SettingsValidationError, match="not a valid config option"):
        validate_pg_settings(FakeConnection([(False,)]), {"bogus": "1"})


def test_validate_accepts_known_setting():
    conn = FakeConnection([(True,)])
    validate_pg_settings(conn, {"max_connections": "100"})
    assert conn.statements == [
        "SELECT EXISTS(SELECT 1 FROM pg_settings WHERE name='max_connections')"
    ]


def test_validate_missing_extension():
    conn = FakeConnection([(True,)], [(True,)], [(False,)])
    with pytest.raises(SettingsValidationError, match="timescaledb"):
        validate_pg_settings(
            conn, {"shared_preload_libraries": "'pg_stat_statements,timescaledb'"}
        )


def test_validate_max_replication_slots_too_low():
    conn = FakeConnection(
        [(True,)],
        [
            ("repmgr_slot_1", True, "reserved", 0),
            ("repmgr_slot_2", True, "reserved", 0),
        ],
    )
    with pytest.raises(SettingsValidationError, match=r"\(2\)"):
        validate_pg_settings(conn, {"max_replication_slots": "1"})


def test_validate_max_replication_slots_not_a_number():
    with pytest.raises(SettingsValidationError):
        validate_pg_settings(FakeConnection([(True,)]), {"max_replication_slots": "x"})