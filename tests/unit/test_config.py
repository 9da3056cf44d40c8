"""Unit tests for YAML configuration."""

import yaml

from driveup.sdk import config


def test_defaults_when_no_file(isolated_config_dir):
    loaded = config.load_config()
    assert loaded == config.DEFAULT_CONFIG
    assert loaded is not config.DEFAULT_CONFIG

    # mutating a loaded config must not leak into the defaults
    loaded["upload"]["chunk_size"] = 1
    assert config.DEFAULT_CONFIG["upload"]["chunk_size"] == 10 * 1024 * 1024


def test_file_values_merge_over_defaults(isolated_config_dir):
    (isolated_config_dir / "config.yaml").write_text(yaml.safe_dump({"upload": {"max_attempts": 9}}))

    loaded = config.load_config()

    assert loaded["upload"]["max_attempts"] == 9
    assert loaded["upload"]["max_delay"] == 32.0
    assert loaded["auth"]["mode"] == "token"


def test_invalid_yaml_falls_back_to_defaults(isolated_config_dir):
    (isolated_config_dir / "config.yaml").write_text("upload: [unclosed")
    assert config.load_config() == config.DEFAULT_CONFIG


def test_set_and_get_dotted_key(isolated_config_dir):
    config.set_config_value("upload.chunk_size", 262144)
    config.set_config_value("auth.mode", "adc")

    assert config.get_config_value("upload.chunk_size") == 262144
    assert config.get_config_value("auth.mode") == "adc"
    assert config.get_config_value("upload.missing", "fallback") == "fallback"


def test_config_file_env_override(tmp_path, monkeypatch):
    target = tmp_path / "elsewhere" / "custom.yaml"
    monkeypatch.setenv("DRIVEUP_CONFIG_FILE", str(target))

    config.set_config_value("upload.timeout", 5)

    assert target.exists()
    assert config.get_sessions_dir() == target.parent / "sessions"
    assert config.get_default_token_path() == target.parent / "user_token.json"
