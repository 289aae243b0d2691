"""Unit tests for configuration loading."""

import pytest
import yaml

from perobatch.core.exceptions import ConfigError
from perobatch.core.settings import (
    DEFAULT_ENDPOINT,
    find_config_file,
    load_settings,
    write_default_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("OCRTOOLS_PERO__DEFAULT_ENGINE", "OCRTOOLS_PERO__API_KEY", "OCRTOOLS_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_load_from_yaml(tmp_path):
    path = write_yaml(
        tmp_path / ".ocrtools.yml",
        {
            "pero": {"api_key": "secret", "endpoint": "https://ocr.example/api", "default_engine": 4},
            "batch": {"poll_interval_seconds": 5, "max_polls": 10},
        },
    )

    settings = load_settings(path)

    assert settings.pero.api_key.get_secret_value() == "secret"
    assert settings.pero.endpoint == "https://ocr.example/api/"
    assert settings.pero.default_engine == 4
    assert settings.batch.poll_interval_seconds == 5
    assert settings.batch.max_polls == 10
    assert settings.batch.done_states == ["PROCESSED"]


def test_defaults_without_file():
    settings = load_settings(None)
    assert settings.pero.endpoint == DEFAULT_ENDPOINT
    assert settings.pero.default_engine == 1
    assert settings.batch.max_polls is None
    assert settings.batch.status_timeout_seconds == 1800
    assert settings.log_format == "text"


def test_environment_fills_missing_values(tmp_path, monkeypatch):
    monkeypatch.setenv("OCRTOOLS_PERO__DEFAULT_ENGINE", "3")
    path = write_yaml(tmp_path / "c.yml", {"pero": {"api_key": "k"}})

    settings = load_settings(path)

    assert settings.pero.default_engine == 3
    assert settings.pero.api_key.get_secret_value() == "k"


def test_file_wins_over_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("OCRTOOLS_PERO__API_KEY", "from-env")
    path = write_yaml(tmp_path / "c.yml", {"pero": {"api_key": "from-file"}})

    settings = load_settings(path)

    assert settings.pero.api_key.get_secret_value() == "from-file"


def test_overrides_win_over_file(tmp_path):
    path = write_yaml(tmp_path / "c.yml", {"batch": {"max_polls": 10, "poll_interval_seconds": 60}})
    settings = load_settings(path, {"batch": {"max_polls": 2}})
    assert settings.batch.max_polls == 2
    assert settings.batch.poll_interval_seconds == 60


def test_invalid_yaml_raises_config_error(tmp_path):
    path = tmp_path / "c.yml"
    path.write_text("pero: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError) as exc_info:
        load_settings(path)
    assert exc_info.value.exit_code == 4


def test_schema_violation_raises_config_error(tmp_path):
    path = write_yaml(tmp_path / "c.yml", {"pero": {"default_engine": "not-a-number"}})
    with pytest.raises(ConfigError):
        load_settings(path)


def test_non_mapping_document_rejected(tmp_path):
    path = tmp_path / "c.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_empty_file_means_defaults(tmp_path):
    path = tmp_path / "c.yml"
    path.write_text("", encoding="utf-8")
    assert load_settings(path).pero.default_engine == 1


class TestConfigDiscovery:
    def test_cwd_before_home(self, tmp_path):
        cwd, home = tmp_path / "cwd", tmp_path / "home"
        cwd.mkdir()
        home.mkdir()
        (home / ".ocrtools.yml").write_text("{}")
        (cwd / ".ocrtools.yml").write_text("{}")
        assert find_config_file(cwd=cwd, home=home) == cwd / ".ocrtools.yml"

    def test_home_fallback_and_yaml_extension(self, tmp_path):
        cwd, home = tmp_path / "cwd", tmp_path / "home"
        cwd.mkdir()
        home.mkdir()
        (home / ".ocrtools.yaml").write_text("{}")
        assert find_config_file(cwd=cwd, home=home) == home / ".ocrtools.yaml"

    def test_nothing_found(self, tmp_path):
        assert find_config_file(cwd=tmp_path, home=tmp_path) is None

    def test_write_default_config_round_trips(self, tmp_path):
        path = write_default_config(home=tmp_path)
        assert path == tmp_path / ".ocrtools.yml"
        settings = load_settings(path)
        assert settings.pero.endpoint == DEFAULT_ENDPOINT
        assert settings.pero.api_key.get_secret_value() == "api-key-here"
