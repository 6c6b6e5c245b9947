import pytest

from pgflex.barman_config import (
    BarmanConfig,
    BarmanSettings,
    ConfigValidationError,
    convert_recovery_window_duration,
    convert_to_postgres_units,
)


@pytest.fixture
def config(tmp_path):
    return BarmanConfig(tmp_path / "barman")


def test_valid_config(config):
    conf = {
        "archive_timeout": "120s",
        "recovery_window": "7d",
        "full_backup_frequency": "24h",
        "minimum_redundancy": "3",
    }
    assert config.validate(conf) is None


@pytest.mark.parametrize(
    "timeout", ["120us", "120ms", "120s", "120m", "120min", "120h", "120d"]
)
def test_valid_archive_timeouts(config, timeout):
    assert config.validate({"archive_timeout": timeout}) is None


def test_invalid_archive_timeout(config):
    with pytest.raises(ConfigValidationError):
        config.validate({"archive_timeout": "120seconds"})


@pytest.mark.parametrize("window", ["10seconds", "1m", "0w"])
def test_invalid_recovery_window(config, window):
    with pytest.raises(ConfigValidationError):
        config.validate({"recovery_window": window})


@pytest.mark.parametrize("frequency", ["10seconds", "1m", "0w"])
def test_invalid_full_backup_frequency(config, frequency):
    with pytest.raises(ConfigValidationError):
        config.validate({"full_backup_frequency": frequency})


def test_invalid_minimum_redundancy(config):
    with pytest.raises(ConfigValidationError):
        config.validate({"minimum_redundancy": "-1"})


def test_invalid_key(config):
    with pytest.raises(ConfigValidationError, match="invalid key"):
        config.validate({"not_a_setting": "1"})


def test_default_settings(config):
    assert config.settings == BarmanSettings(
        archive_timeout="60s",
        recovery_window="RECOVERY WINDOW OF 7 DAYS",
        full_backup_frequency="24h",
        minimum_redundancy="3",
    )


def test_setting_update(config):
    user_config = {"archive_timeout": "60m"}
    config.validate(user_config)
    config.set_user_config(user_config)
    config._write_user_config_file()

    current = config.current_config()
    assert current["archive_timeout"] == "60m"
    assert current["minimum_redundancy"] == "3"


def test_parse_settings_reflects_user_overrides(config):
    config.set_user_config({"archive_timeout": "60m", "recovery_window": "2w"})
    config._write_user_config_file()

    settings = config.parse_settings()
    assert settings.archive_timeout == "60min"
    assert settings.recovery_window == "RECOVERY WINDOW OF 2 WEEKS"


def test_user_overrides_survive_reload(tmp_path):
    first = BarmanConfig(tmp_path)
    first.set_user_config({"minimum_redundancy": "5"})
    first._write_user_config_file()

    second = BarmanConfig(tmp_path)
    assert second.user_config == {"minimum_redundancy": "5"}
    assert second.settings.minimum_redundancy == "5"


def test_set_defaults_restores_internal_config(config):
    config.internal_config = {}
    config.set_defaults()
    assert config.internal_config["full_backup_frequency"] == "24h"


def test_convert_recovery_window():
    assert convert_recovery_window_duration("7d") == "7 DAYS"
    assert convert_recovery_window_duration("1y") == "1y"


def test_convert_to_postgres_units():
    assert convert_to_postgres_units("60s") == "60s"
    assert convert_to_postgres_units("120m") == "120min"
    with pytest.raises(ValueError):
        convert_to_postgres_units("seconds")