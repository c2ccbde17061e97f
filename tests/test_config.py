import pytest
import yaml

from wlcpoll.config import DEFAULT_CONFIG, Settings, load_config
from wlcpoll.telemetry import ConfigError


def _write(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def test_defaults_without_file():
    settings = Settings.from_dict(load_config())
    assert settings.snmp.port == 161
    assert settings.snmp.community == "public"
    assert settings.poll.interval_seconds == 10.0
    assert settings.poll.groups == ()
    assert settings.logging.level == "INFO"


def test_yaml_merges_over_defaults(tmp_path):
    path = _write(tmp_path, {
        "snmp": {"host": "10.1.1.1", "community": "s3cret"},
        "poll": {"groups": [".1.3.6.1.4.1.14179.2.1.4.1.1"]},
    })
    settings = Settings.from_dict(load_config(path))
    assert settings.snmp.host == "10.1.1.1"
    assert settings.snmp.community == "s3cret"
    assert settings.snmp.timeout == DEFAULT_CONFIG["snmp"]["timeout"]
    assert settings.poll.groups == (".1.3.6.1.4.1.14179.2.1.4.1.1",)


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    path = _write(tmp_path, {"snmp": {"host": "10.1.1.1"}})
    monkeypatch.setenv("WLCPOLL_SNMP_HOST", "10.2.2.2")
    monkeypatch.setenv("WLCPOLL_POLL_INTERVAL_SECONDS", "30")
    monkeypatch.setenv("WLCPOLL_SNMP_RETRIES", "3")
    settings = Settings.from_dict(load_config(path))
    assert settings.snmp.host == "10.2.2.2"
    assert settings.poll.interval_seconds == 30.0
    assert settings.snmp.retries == 3


def test_invalid_environment_value_is_ignored(monkeypatch):
    monkeypatch.setenv("WLCPOLL_SNMP_PORT", "not-a-port")
    settings = Settings.from_dict(load_config())
    assert settings.snmp.port == 161


def test_missing_file_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "absent.yaml"))


def test_non_mapping_file_is_config_error(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(str(path))


@pytest.mark.parametrize("section,name,value", [
    ("poll", "interval_seconds", 0),
    ("snmp", "timeout", -1),
    ("snmp", "port", 70000),
    ("snmp", "host", ""),
    ("logging", "level", "CHATTY"),
    ("snmp", "retries", "many"),
])
def test_invalid_values_raise(section, name, value):
    config = load_config()
    config[section][name] = value
    with pytest.raises(ConfigError):
        Settings.from_dict(config)
