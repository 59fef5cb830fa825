"""Tests for loading feed settings."""

import pytest

from option_chain_feed.config import FeedSettings, load_settings


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


def test_load_from_yaml(tmp_path):
    path = write_config(tmp_path, "stream:\n  url: https://example.com/api/data\n  max_retries: 3\n  read_timeout: 60\n")
    settings = load_settings(path, env={})
    assert settings == FeedSettings(url="https://example.com/api/data", max_retries=3, read_timeout=60)


def test_environment_overrides_file(tmp_path):
    """OPTION_CHAIN_FEED_* variables win over the file."""
    path = write_config(tmp_path, "stream:\n  url: https://example.com/api/data\n  base_delay_ms: 500\n")
    env = {
        "OPTION_CHAIN_FEED_URL": "https://other.example.com/stream",
        "OPTION_CHAIN_FEED_MAX_DELAY_MS": "10000",
        "OPTION_CHAIN_FEED_CONNECT_TIMEOUT": "2.5",
        "OPTION_CHAIN_FEED_LOG_LEVEL": "",
    }
    settings = load_settings(path, env=env)
    assert settings.url == "https://other.example.com/stream"
    assert settings.base_delay_ms == 500
    assert settings.max_delay_ms == 10000
    assert settings.connect_timeout == 2.5
    assert settings.log_level == "INFO"


def test_environment_only():
    settings = load_settings(env={"OPTION_CHAIN_FEED_URL": "http://localhost:8000/api/data"})
    assert settings.url == "http://localhost:8000/api/data"
    assert settings.max_retries == 5


def test_missing_file_falls_back_to_environment(tmp_path):
    settings = load_settings(str(tmp_path / "absent.yaml"), env={"OPTION_CHAIN_FEED_URL": "http://x"})
    assert settings.url == "http://x"


def test_missing_url_raises():
    with pytest.raises(ValueError):
        load_settings(env={})


def test_invalid_env_value_raises():
    with pytest.raises(ValueError):
        load_settings(env={"OPTION_CHAIN_FEED_URL": "http://x", "OPTION_CHAIN_FEED_MAX_RETRIES": "many"})


def test_unknown_keys_are_ignored(tmp_path):
    path = write_config(tmp_path, "stream:\n  url: http://x\n  colour: blue\n")
    assert load_settings(path, env={}) == FeedSettings(url="http://x")


def test_stream_section_must_be_mapping(tmp_path):
    path = write_config(tmp_path, "stream: [1, 2]\n")
    with pytest.raises(ValueError):
        load_settings(path, env={})


def test_yaml_values_are_converted(tmp_path):
    """Quoted numbers in the file get the same conversion as environment values."""
    path = write_config(
        tmp_path,
        'stream:\n  url: http://x\n  base_delay_ms: "1000"\n  max_retries: "3"\n  connect_timeout: 5\n  read_timeout: null\n',
    )
    settings = load_settings(path, env={})
    assert settings.base_delay_ms == 1000 and isinstance(settings.base_delay_ms, int)
    assert settings.max_retries == 3
    assert settings.connect_timeout == 5.0 and isinstance(settings.connect_timeout, float)
    assert settings.read_timeout is None


@pytest.mark.parametrize("line", ['base_delay_ms: "soon"', "max_retries: true", "max_delay_ms: 2.5", "url: [a, b]"])
def test_wrongly_typed_yaml_value_raises(tmp_path, line):
    path = write_config(tmp_path, f"stream:\n  url: http://x\n  {line}\n")
    with pytest.raises(ValueError):
        load_settings(path, env={})
