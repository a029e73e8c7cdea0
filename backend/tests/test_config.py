"""Tests for settings loading and validation."""
import pytest
from pydantic import ValidationError

from relay import config as config_module
from relay.config import AppConfig, ChatSettings, get_config, load_config, reset_config
from relay.chat.state import RelayState


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


def test_defaults_when_file_missing(tmp_path):
    cfg = load_config(settings_path=tmp_path / "missing.yaml")

    assert cfg.server.port == 3000
    assert cfg.logging.level == "info"
    assert cfg.chat.room_prefix == "room_"
    assert cfg.chat.room_separator == "_"
    assert cfg.chat.max_message_length == 10000


def test_values_loaded_from_yaml(tmp_path):
    settings_file = tmp_path / "relay.settings.yaml"
    settings_file.write_text(
        "server:\n"
        "  port: 4000\n"
        "logging:\n"
        "  level: DEBUG\n"
        "chat:\n"
        "  room_prefix: 'dm:'\n"
        "  room_separator: '|'\n"
        "  max_message_length: 500\n",
        encoding="utf-8",
    )

    cfg = load_config(settings_path=settings_file)

    assert cfg.server.port == 4000
    assert cfg.logging.level == "debug"
    assert cfg.chat.room_prefix == "dm:"
    assert cfg.chat.room_separator == "|"
    assert cfg.chat.max_message_length == 500


def test_empty_yaml_file(tmp_path):
    settings_file = tmp_path / "relay.settings.yaml"
    settings_file.write_text("", encoding="utf-8")
    assert load_config(settings_path=settings_file) == AppConfig()


def test_env_var_selects_settings_file(tmp_path, monkeypatch):
    settings_file = tmp_path / "custom.yaml"
    settings_file.write_text("server:\n  port: 5050\n", encoding="utf-8")
    monkeypatch.setenv(config_module.SETTINGS_ENV_VAR, str(settings_file))

    assert get_config().server.port == 5050


def test_get_config_is_cached(tmp_path, monkeypatch):
    monkeypatch.setenv(config_module.SETTINGS_ENV_VAR, str(tmp_path / "none.yaml"))
    assert get_config() is get_config()


def test_unknown_log_level_rejected():
    with pytest.raises(ValidationError):
        AppConfig(logging={"level": "chatty"})


def test_empty_separator_rejected():
    with pytest.raises(ValidationError):
        ChatSettings(room_separator="")


def test_max_message_length_must_be_positive():
    with pytest.raises(ValidationError):
        ChatSettings(max_message_length=0)


def test_state_uses_chat_settings():
    state = RelayState(ChatSettings(room_prefix="dm:", room_separator="|"))
    assert state.rooms.room_id_for("b", "a") == "dm:a|b"
