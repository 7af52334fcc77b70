import json
from pathlib import Path
from unittest.mock import patch

import pytest

from drive_migrator.config import (
    DEFAULT_DESTINATION_TOKEN_PATH,
    DEFAULT_SOURCE_TOKEN_PATH,
    AccountConfig,
    Config,
    ConfigManager,
    MigrationConfig,
    config_from_dict,
    config_to_dict,
    validate_config,
)
from drive_migrator.utils.exceptions import ConfigurationError

pytestmark = pytest.mark.unit


@pytest.fixture
def sample_config_dict():
    return {
        "source": {
            "credentials_path": "/tmp/client.json",
            "token_path": "/tmp/source_token.json",
        },
        "destination": {
            "credentials_path": "/tmp/client.json",
            "token_path": "/tmp/destination_token.json",
        },
        "migration": {
            "window_size": 8,
            "dest_folder_id": "1DEST_folder",
            "provenance_key": "original_id",
            "requests_per_second": 4.0,
            "burst_size": 4,
        },
    }


@pytest.fixture
def config_file(tmp_path, sample_config_dict):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)
    monkeypatch.delenv("DRIVE_MIGRATOR_DEST_FOLDER_ID", raising=False)


class TestDefaults:
    def test_migration_defaults(self):
        cfg = MigrationConfig()
        assert cfg.window_size == 5
        assert cfg.dest_folder_id == "root"
        assert cfg.provenance_key == "original_id"

    def test_accounts_use_separate_tokens(self):
        cfg = Config()
        assert cfg.source.token_path == DEFAULT_SOURCE_TOKEN_PATH
        assert cfg.destination.token_path == DEFAULT_DESTINATION_TOKEN_PATH
        cfg.validate()


class TestValidation:
    def test_window_size_must_be_positive(self):
        cfg = Config(migration=MigrationConfig(window_size=0))
        with pytest.raises(ConfigurationError, match="window_size"):
            cfg.validate()

    def test_collects_all_errors(self):
        cfg = Config(
            migration=MigrationConfig(
                window_size=0, dest_folder_id="", requests_per_second=0
            )
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(cfg)
        message = str(exc_info.value)
        assert "window_size" in message
        assert "dest_folder_id" in message
        assert "requests_per_second" in message

    def test_token_paths_must_differ(self):
        cfg = Config(
            source=AccountConfig(token_path="~/token.json"),
            destination=AccountConfig(token_path="~/token.json"),
        )
        with pytest.raises(ConfigurationError, match="token_path"):
            cfg.validate()


class TestSerialization:
    def test_round_trip(self, sample_config_dict):
        cfg = config_from_dict(sample_config_dict)
        assert config_to_dict(cfg) == sample_config_dict

    def test_missing_sections_use_defaults(self):
        cfg = config_from_dict({})
        assert cfg == Config()


class TestConfigManager:
    def test_load(self, config_file):
        mgr = ConfigManager(config_path=config_file)
        cfg = mgr.load()
        assert cfg.migration.window_size == 8
        assert mgr.get("migration.dest_folder_id") == "1DEST_folder"

    def test_load_missing_file(self, tmp_path):
        mgr = ConfigManager(config_path=tmp_path / "nope.json")
        assert mgr.exists() is False
        with pytest.raises(ConfigurationError, match="not found"):
            mgr.load()

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            ConfigManager(config_path=path).load()

    def test_load_keeps_invalid_values_for_editing(self, tmp_path, sample_config_dict):
        sample_config_dict["migration"]["window_size"] = -1
        path = tmp_path / "config.json"
        path.write_text(json.dumps(sample_config_dict), encoding="utf-8")

        cfg = ConfigManager(config_path=path).load()

        assert cfg.migration.window_size == -1
        with pytest.raises(ConfigurationError, match="window_size"):
            cfg.validate()

    def test_env_overrides(self, config_file, monkeypatch):
        monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", "/env/client.json")
        monkeypatch.setenv("DRIVE_MIGRATOR_DEST_FOLDER_ID", "env-folder")

        cfg = ConfigManager(config_path=config_file).load()

        assert cfg.source.credentials_path == "/env/client.json"
        assert cfg.destination.credentials_path == "/env/client.json"
        assert cfg.migration.dest_folder_id == "env-folder"

    def test_save_creates_directory(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        mgr = ConfigManager(config_path=path)
        mgr.set("migration.window_size", 3)
        mgr.save()

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["migration"]["window_size"] == 3

    def test_get_unknown_key_returns_default(self, config_file):
        mgr = ConfigManager(config_path=config_file)
        assert mgr.get("migration.nope", "fallback") == "fallback"

    def test_set_unknown_key_raises(self, config_file):
        mgr = ConfigManager(config_path=config_file)
        with pytest.raises(ConfigurationError) as exc_info:
            mgr.set("migration.nope", 1)
        assert exc_info.value.config_key == "migration.nope"

    def test_get_or_prompt_uses_existing_as_default(self, config_file):
        mgr = ConfigManager(config_path=config_file)
        with patch("drive_migrator.config.click.prompt", return_value="new") as prompt:
            value = mgr.get_or_prompt("migration.dest_folder_id", "Destination folder ID")

        assert value == "new"
        assert mgr.get("migration.dest_folder_id") == "new"
        assert prompt.call_args.kwargs["default"] == "1DEST_folder"

    def test_get_or_prompt_without_existing(self, tmp_path):
        mgr = ConfigManager(config_path=tmp_path / "config.json")
        mgr.set("migration.dest_folder_id", "")
        with patch("drive_migrator.config.click.prompt", return_value="abc") as prompt:
            mgr.get_or_prompt("migration.dest_folder_id", "Destination folder ID")

        assert "default" not in prompt.call_args.kwargs
        assert mgr.get("migration.dest_folder_id") == "abc"

    def test_default_path(self):
        mgr = ConfigManager()
        assert mgr.config_path == Path.home() / ".drive-migrator" / "config.json"
