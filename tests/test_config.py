"""Tests for file and environment configuration."""

import logging

import pytest

from curupira.config import Config, load_config
from curupira.errors import ConfigError


@pytest.fixture
def config_file(tmp_path):
    def write(text):
        path = tmp_path / "curupira.toml"
        path.write_text(text)
        return path

    return write


def test_defaults_without_file(tmp_path):
    config = load_config(tmp_path / "missing.toml", env={})
    assert config == Config()
    assert config.chrome.port == 9222
    assert config.chrome.enable_domains == ["Runtime", "Page", "Network", "Log"]


def test_file_values(config_file):
    path = config_file(
        """
[chrome]
host = "chrome.internal"
port = 9333
connect_on_start = true
enable_domains = ["Runtime", "Page"]

[store]
max_events = 200
"""
    )
    config = load_config(path, env={})
    assert config.chrome.host == "chrome.internal"
    assert config.chrome.port == 9333
    assert config.chrome.connect_on_start is True
    assert config.chrome.enable_domains == ["Runtime", "Page"]
    assert config.store.max_events == 200


def test_environment_overrides_file(config_file):
    path = config_file("[chrome]\nport = 9333\n")
    env = {"CURUPIRA_CHROME_PORT": "9444", "CURUPIRA_CONNECT_ON_START": "yes", "CURUPIRA_LOG_LEVEL": "debug"}

    config = load_config(path, env=env)
    assert config.chrome.port == 9444
    assert config.chrome.connect_on_start is True
    assert config.logging.level == "debug"


def test_invalid_port(tmp_path):
    with pytest.raises(ConfigError, match="Invalid value for chrome.port"):
        load_config(tmp_path / "missing.toml", env={"CURUPIRA_CHROME_PORT": "70000"})


def test_non_numeric_value(tmp_path):
    with pytest.raises(ConfigError, match="Invalid value for server.port"):
        load_config(tmp_path / "missing.toml", env={"CURUPIRA_SERVER_PORT": "http"})


def test_invalid_boolean(tmp_path):
    with pytest.raises(ConfigError, match="expected a boolean"):
        load_config(tmp_path / "missing.toml", env={"CURUPIRA_CONNECT_ON_START": "maybe"})


def test_unknown_log_level(tmp_path):
    with pytest.raises(ConfigError, match="Unknown log level: LOUD"):
        load_config(tmp_path / "missing.toml", env={"CURUPIRA_LOG_LEVEL": "LOUD"})


def test_invalid_toml(config_file):
    path = config_file("[chrome\nport = ")
    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(path, env={})


def test_unknown_keys_are_ignored_with_warning(config_file, caplog):
    path = config_file("[chrome]\nbogus = 1\n\n[extras]\nx = 1\n")

    with caplog.at_level(logging.WARNING, logger="curupira.config"):
        config = load_config(path, env={})

    assert config == Config()
    assert "Ignoring unknown config key chrome.bogus" in caplog.text
    assert "Ignoring unknown config section [extras]" in caplog.text


def test_comma_separated_domains(config_file):
    config = load_config(config_file("[chrome]\nenable_domains = \"Runtime, Debugger,\"\n"), env={})
    assert config.chrome.enable_domains == ["Runtime", "Debugger"]
