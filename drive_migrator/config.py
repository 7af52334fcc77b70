import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = "~/.drive-migrator/google_credentials.json"
DEFAULT_SOURCE_TOKEN_PATH = "~/.drive-migrator/source_token.json"
DEFAULT_DESTINATION_TOKEN_PATH = "~/.drive-migrator/destination_token.json"


@dataclass
class AccountConfig:
    credentials_path: str = DEFAULT_CREDENTIALS_PATH
    token_path: str = DEFAULT_SOURCE_TOKEN_PATH


def _destination_account() -> AccountConfig:
    return AccountConfig(token_path=DEFAULT_DESTINATION_TOKEN_PATH)


@dataclass
class MigrationConfig:
    window_size: int = 5
    dest_folder_id: str = "root"
    provenance_key: str = "original_id"
    requests_per_second: float = 10.0
    burst_size: int = 10


@dataclass
class Config:
    source: AccountConfig = field(default_factory=AccountConfig)
    destination: AccountConfig = field(default_factory=_destination_account)
    migration: MigrationConfig = field(default_factory=MigrationConfig)

    def validate(self) -> None:
        errors: List[str] = []
        if self.migration.window_size <= 0:
            errors.append("migration.window_size must be > 0")
        if not self.migration.dest_folder_id:
            errors.append("migration.dest_folder_id must not be empty")
        if not self.migration.provenance_key:
            errors.append("migration.provenance_key must not be empty")
        if self.migration.requests_per_second <= 0:
            errors.append("migration.requests_per_second must be > 0")
        if self.migration.burst_size <= 0:
            errors.append("migration.burst_size must be > 0")
        if (
            Path(self.source.token_path).expanduser()
            == Path(self.destination.token_path).expanduser()
        ):
            errors.append(
                "source.token_path and destination.token_path must differ"
            )
        if errors:
            raise ConfigurationError(
                "Configuration validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )


def validate_config(config: Config) -> None:
    config.validate()


def config_to_dict(config: Config) -> Dict[str, Any]:
    return asdict(config)


def _account_from_dict(data: Dict[str, Any], default_token_path: str) -> AccountConfig:
    return AccountConfig(
        credentials_path=data.get("credentials_path", DEFAULT_CREDENTIALS_PATH),
        token_path=data.get("token_path", default_token_path),
    )


def config_from_dict(data: Dict[str, Any]) -> Config:
    source = _account_from_dict(data.get("source", {}), DEFAULT_SOURCE_TOKEN_PATH)
    destination = _account_from_dict(
        data.get("destination", {}), DEFAULT_DESTINATION_TOKEN_PATH
    )

    mig_data = data.get("migration", {})
    migration = MigrationConfig(
        window_size=mig_data.get("window_size", 5),
        dest_folder_id=mig_data.get("dest_folder_id", "root"),
        provenance_key=mig_data.get("provenance_key", "original_id"),
        requests_per_second=mig_data.get("requests_per_second", 10.0),
        burst_size=mig_data.get("burst_size", 10),
    )

    return Config(source=source, destination=destination, migration=migration)


class ConfigManager:
    """Manages configuration loading, saving, and access for the migrator."""

    DEFAULT_CONFIG_DIR = Path.home() / ".drive-migrator"
    DEFAULT_CONFIG_FILE = "config.json"

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self._config_path = config_path or (
            self.DEFAULT_CONFIG_DIR / self.DEFAULT_CONFIG_FILE
        )
        self._config: Optional[Config] = None

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = Config()
        return self._config

    def ensure_config_dir(self) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Config:
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                "Run 'drive-migrator config' to create one."
            )

        try:
            raw = self._config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in configuration file {self._config_path}: {e}"
            ) from e

        config = config_from_dict(data)

        credentials_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        if credentials_path:
            config.source.credentials_path = credentials_path
            config.destination.credentials_path = credentials_path
            logger.debug(
                "Overriding credentials_path from "
                "GOOGLE_APPLICATION_CREDENTIALS environment variable"
            )

        dest_folder_id = os.environ.get("DRIVE_MIGRATOR_DEST_FOLDER_ID")
        if dest_folder_id:
            config.migration.dest_folder_id = dest_folder_id
            logger.debug(
                "Overriding migration.dest_folder_id from "
                "DRIVE_MIGRATOR_DEST_FOLDER_ID environment variable"
            )

        self._config = config
        logger.info("Configuration loaded from %s", self._config_path)
        return config

    def save(self) -> None:
        self.ensure_config_dir()
        if self._config is None:
            self._config = Config()
        data = config_to_dict(self._config)
        try:
            self._config_path.write_text(
                json.dumps(data, indent=2) + "\n", encoding="utf-8"
            )
        except OSError as e:
            raise ConfigurationError(f"Failed to write configuration file: {e}") from e
        logger.info("Configuration saved to %s", self._config_path)

    def get(self, key: str, default: Any = None) -> Any:
        if self._config is None:
            try:
                self.load()
            except ConfigurationError:
                self._config = Config()
        obj: Any = self._config
        for segment in key.split("."):
            if not hasattr(obj, segment):
                return default
            obj = getattr(obj, segment)
        return obj

    def set(self, key: str, value: Any) -> None:
        if self._config is None:
            try:
                self.load()
            except ConfigurationError:
                self._config = Config()

        segments = key.split(".")
        obj: Any = self._config
        for segment in segments[:-1]:
            if not hasattr(obj, segment):
                raise ConfigurationError(
                    f"Invalid configuration key: {key} "
                    f"(unknown segment '{segment}')",
                    config_key=key,
                )
            obj = getattr(obj, segment)

        final = segments[-1]
        if not hasattr(obj, final):
            raise ConfigurationError(
                f"Invalid configuration key: {key} (unknown segment '{final}')",
                config_key=key,
            )
        setattr(obj, final, value)

    def get_or_prompt(self, key: str, prompt_text: str, value_type: Any = str) -> Any:
        existing = self.get(key)
        if existing not in (None, ""):
            value = click.prompt(prompt_text, default=existing, type=value_type)
        else:
            value = click.prompt(prompt_text, type=value_type)
        self.set(key, value)
        return value

    def exists(self) -> bool:
        return self._config_path.exists()
